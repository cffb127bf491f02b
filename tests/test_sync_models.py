"""Tests for sync data models.

Covers:
- Persisted aliases accepted on input and used on dump
- Override/rewrite upsert semantics (first original value kept)
- ChangeSummary.has_changes and CheckReport.status
"""

from __future__ import annotations

import pytest
from conftest import make_entry
from pydantic import ValidationError

from upstream_sync.sync.models import (
    ChangeSummary,
    CheckReport,
    CheckStatus,
    DefinitionError,
    ManifestEntry,
    ManualOverride,
    Rewrite,
)


def _override(field: str, original: str | None = None, reason: str = "r"):
    return ManualOverride(
        field=field,
        reason=reason,
        original_value=original,
        overridden_at="2026-01-01T00:00:00Z",
    )


class TestManifestEntry:
    def test_aliases(self):
        entry = ManifestEntry.model_validate(make_entry("skills/alpha"))
        dumped = entry.model_dump(by_alias=True, exclude_unset=True)
        assert dumped["upstream_commit"] == "abc123"
        assert dumped["synced_at"] == "2026-01-10T12:00:00Z"
        assert dumped["files"] == ["SKILL.md"]
        assert entry.is_multi_file

    def test_frozen(self):
        entry = ManifestEntry.model_validate(make_entry("agents/a"))
        with pytest.raises(ValidationError):
            entry.notes = "changed"

    def test_with_rewrite_is_keyed_by_field(self):
        entry = ManifestEntry.model_validate(make_entry("agents/a"))
        first = Rewrite(field="body", reason="a", original_value="x")
        once = entry.with_rewrite(first)
        twice = once.with_rewrite(Rewrite(field="body", reason="b"))
        assert twice.rewrites == [first]
        assert entry.rewrites == []

    def test_with_override_keeps_first_original(self):
        entry = ManifestEntry.model_validate(make_entry("agents/a"))
        entry = entry.with_override(_override("description", "v1", "first"))
        entry = entry.with_override(_override("description", "v2", "second"))
        [override] = entry.manual_overrides
        assert override.original_value == "v1"
        assert override.reason == "second"

    def test_override_lookup_and_wildcard(self):
        entry = ManifestEntry.model_validate(make_entry("agents/a"))
        assert not entry.has_wildcard_override()
        entry = entry.with_override(_override("*"))
        assert entry.has_wildcard_override()
        assert entry.override_for("*") is not None
        assert entry.override_for("model") is None


class TestChangeSummary:
    @pytest.mark.parametrize(
        "kwargs, expected",
        [
            ({}, False),
            ({"skipped": ["k"]}, False),
            ({"new_upstream_files": {"k": ["a.md"]}}, False),
            ({"hash_changes": ["k"]}, True),
            ({"new_upstream": ["k"]}, True),
            ({"deletions": ["k"]}, True),
            ({"pipeline_version_changed": True}, True),
        ],
    )
    def test_has_changes(self, kwargs, expected):
        assert ChangeSummary(**kwargs).has_changes is expected


class TestCheckReportStatus:
    def test_fatal_is_error(self):
        report = CheckReport(
            fatal_error=DefinitionError(kind="manifest", message="bad"),
            started_at="t",
        )
        assert report.status == CheckStatus.ERROR

    def test_errors_win_over_changes(self):
        summary = ChangeSummary(
            hash_changes=["k"],
            errors=[DefinitionError(kind="fetch", message="x")],
        )
        report = CheckReport(summary=summary, started_at="t")
        assert report.status == CheckStatus.ERROR

    def test_changes_and_no_changes(self):
        changed = CheckReport(
            summary=ChangeSummary(deletions=["k"]), started_at="t"
        )
        clean = CheckReport(summary=ChangeSummary(), started_at="t")
        assert changed.status == CheckStatus.CHANGES_DETECTED
        assert clean.status == CheckStatus.NO_CHANGES
