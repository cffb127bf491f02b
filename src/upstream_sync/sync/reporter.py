"""Check report formatting functions.

Provides machine-readable and human-readable output for check runs:

- ``exit_status`` -- process status derived from a ``ChangeSummary`` alone.
- ``report_status`` -- the same, also mapping a fatal error to ``ERROR``.
- ``summary_to_json`` -- camelCase dict of a summary for the CLI.
- ``report_to_json`` -- structured dict for MCP tool output.
- ``format_check_report`` -- human-readable run summary.
- ``format_conflict`` -- unified diff of one override conflict.
"""

from __future__ import annotations

import difflib
from typing import TYPE_CHECKING

from .models import CheckStatus, ReconcileAction

if TYPE_CHECKING:
    from .models import (
        ChangeSummary,
        CheckReport,
        DefinitionError,
        FieldConflict,
        ReconcileOutcome,
    )

# ------------------------------------------------------------------
# Status
# ------------------------------------------------------------------


def exit_status(summary: ChangeSummary) -> CheckStatus:
    """Map a summary to a process status.

    Any error wins over any change; otherwise any drift means
    ``CHANGES_DETECTED``.  ``skipped`` and ``new_upstream_files`` alone
    never count as changes.
    """
    if summary.errors:
        return CheckStatus.ERROR
    if summary.has_changes:
        return CheckStatus.CHANGES_DETECTED
    return CheckStatus.NO_CHANGES


def report_status(report: CheckReport) -> CheckStatus:
    """Map a full check report to a process status."""
    if report.fatal_error is not None or report.summary is None:
        return CheckStatus.ERROR
    return exit_status(report.summary)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def _error_to_json(error: DefinitionError) -> dict:
    entry: dict = {"kind": error.kind, "message": error.message}
    if error.key is not None:
        entry["key"] = error.key
    if error.path is not None:
        entry["path"] = error.path
    return entry


def summary_to_json(summary: ChangeSummary) -> dict:
    """Convert a summary to the camelCase structure printed by the CLI."""
    return {
        "hashChanges": list(summary.hash_changes),
        "newUpstream": list(summary.new_upstream),
        "newUpstreamFiles": {
            key: list(files)
            for key, files in summary.new_upstream_files.items()
        },
        "deletions": list(summary.deletions),
        "skipped": list(summary.skipped),
        "errors": [_error_to_json(e) for e in summary.errors],
        "converterVersionChanged": summary.pipeline_version_changed,
    }


def _outcome_to_json(outcome: ReconcileOutcome) -> dict:
    return {
        "key": outcome.key,
        "action": outcome.action.value,
        "changedFields": list(outcome.changed_fields),
        "appliedFields": list(outcome.applied_fields),
        "preservedFields": list(outcome.preserved_fields),
        "baseAvailable": outcome.base_available,
        "conflicts": [
            {
                "field": c.field,
                "overrideReason": c.override_reason,
                "overrideValue": c.override_value,
                "upstreamValue": c.upstream_value,
                "baseValue": c.base_value,
            }
            for c in outcome.conflicts
        ],
        "rewrites": [
            r.model_dump(by_alias=True, exclude_none=True)
            for r in outcome.rewrites
        ],
    }


def report_to_json(report: CheckReport) -> dict:
    """Convert a check report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output and ``--format json``.

    Args:
        report: The check report.

    Returns:
        Dict with status, timestamps, the summary and per-definition
        reconciliation outcomes.
    """
    status = report_status(report)
    return {
        "source": report.source_id,
        "status": int(status),
        "statusName": status.name.lower(),
        "startedAt": report.started_at,
        "completedAt": report.completed_at,
        "fatalError": (
            _error_to_json(report.fatal_error)
            if report.fatal_error is not None
            else None
        ),
        "summary": (
            summary_to_json(report.summary)
            if report.summary is not None
            else None
        ),
        "outcomes": [_outcome_to_json(o) for o in report.outcomes],
    }


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _section(lines: list[str], title: str, items: list[str]) -> None:
    if not items:
        return
    lines.append(f"{title}:")
    for item in items:
        lines.append(f"  {item}")
    lines.append("")


def format_check_report(report: CheckReport) -> str:
    """Format a check report as human-readable text.

    Sections are only included when they contain at least one item.

    Args:
        report: The completed check report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Upstream check"
    if report.source_id:
        header += f" for '{report.source_id}'"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if report.fatal_error is not None:
        lines.append(
            f"FATAL ({report.fatal_error.kind}): {report.fatal_error.message}"
        )
        return "\n".join(lines).rstrip()

    summary = report.summary
    if summary is None:
        lines.append("No summary produced.")
        return "\n".join(lines).rstrip()

    lines.append(
        f"{len(summary.hash_changes)} changed, "
        f"{len(summary.new_upstream)} new, "
        f"{len(summary.deletions)} deleted, "
        f"{len(summary.skipped)} skipped, "
        f"{len(summary.errors)} errors"
    )
    lines.append("")

    if summary.pipeline_version_changed:
        lines.append(
            "Converter version changed: all definitions need re-processing."
        )
        lines.append("")

    _section(lines, "Changed upstream", summary.hash_changes)
    _section(
        lines,
        "New upstream",
        [
            f"{key} ({len(summary.new_upstream_files.get(key, []))} files)"
            for key in summary.new_upstream
        ],
    )
    _section(lines, "Deleted upstream", summary.deletions)
    _section(lines, "Skipped (locally owned)", summary.skipped)
    _section(
        lines,
        "Errors",
        [
            f"[{e.kind}] {e.key or e.path or '-'}: {e.message}"
            for e in summary.errors
        ],
    )

    actionable = [
        o for o in report.outcomes if o.action != ReconcileAction.SKIP
    ]
    if actionable:
        lines.append("Reconciliation:")
        for outcome in actionable:
            label = outcome.action.value.upper().replace("_", " ")
            detail = ""
            if outcome.applied_fields:
                detail = f" apply {', '.join(outcome.applied_fields)}"
            if outcome.conflicts:
                detail += (
                    " conflict "
                    + ", ".join(c.field for c in outcome.conflicts)
                )
            lines.append(f"  [{label}] {outcome.key}{detail}")
        lines.append("")

    for outcome in report.conflicts:
        for conflict in outcome.conflicts:
            lines.append(format_conflict(outcome.key, conflict))
            lines.append("")

    lines.append(f"Status: {report_status(report).name}")
    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflict diff
# ------------------------------------------------------------------


def format_conflict(key: str, conflict: FieldConflict) -> str:
    """Format a single override conflict for human review.

    Shows the override's reason and a unified diff from the value the
    override was recorded against to the new upstream value.

    Args:
        key: Definition key.
        conflict: The conflict details.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append(f"Conflict: {key} field '{conflict.field}'")
    lines.append(f"Override reason: {conflict.override_reason}")

    before = conflict.override_value
    if before is None:
        before = conflict.base_value
    diff = difflib.unified_diff(
        (before or "").splitlines(),
        (conflict.upstream_value or "").splitlines(),
        fromfile=f"override: {conflict.field}",
        tofile=f"upstream: {conflict.field}",
        lineterm="",
    )
    diff_text = "\n".join(diff)
    if diff_text:
        lines.append(diff_text.rstrip())
    else:
        lines.append("(no textual differences)")

    return "\n".join(lines).rstrip()
