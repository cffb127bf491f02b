"""Change classification between the manifest and the upstream inventory.

Pure functions over already-fetched data: no network access, no manifest
writes.  Re-running with the same inputs always yields the same summary.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .hashing import compute_entry_hash
from .keys import DefinitionLayout
from .models import ChangeSummary, DefinitionError, Manifest

logger = logging.getLogger(__name__)


def compute_check_summary(
    manifest: Manifest,
    upstream_keys: Iterable[str],
    upstream_contents: Mapping[str, str],
    inventory_paths: Iterable[str],
    pipeline_version: int,
    layout: DefinitionLayout | None = None,
    failures: Mapping[str, str] | None = None,
) -> ChangeSummary:
    """Classify every definition as new, deleted, skipped, changed or broken.

    Args:
        manifest: Validated manifest.
        upstream_keys: Definition keys present upstream.
        upstream_contents: Upstream path to content for fetched blobs.
        inventory_paths: Every blob path of the upstream inventory.
        pipeline_version: Current output format version.
        layout: Key layout used to collect files of new definitions.
        failures: Blob paths whose fetch failed, mapped to the message.

    Returns:
        A ``ChangeSummary``; every list in it is sorted.
    """
    layout = layout or DefinitionLayout()
    upstream = set(upstream_keys)
    tracked = set(manifest.definitions)

    new_upstream = sorted(upstream - tracked)
    deletions = sorted(tracked - upstream)

    hash_changes: list[str] = []
    skipped: list[str] = []
    errors: list[DefinitionError] = []

    for key in sorted(upstream & tracked):
        entry = manifest.definitions[key]
        if entry.has_wildcard_override():
            skipped.append(key)
            continue

        digest = compute_entry_hash(
            entry, upstream_contents, errors, key=key, failures=failures
        )
        if digest is None:
            logger.warning("%s: hash not computed, content missing", key)
            continue
        if digest != entry.upstream_content_hash:
            hash_changes.append(key)

    pipeline_version_changed = (
        manifest.pipeline_version is not None
        and manifest.pipeline_version != pipeline_version
    )

    new_upstream_files = layout.collect_new_upstream_files(
        inventory_paths, new_upstream
    )

    return ChangeSummary(
        hash_changes=hash_changes,
        new_upstream=new_upstream,
        new_upstream_files=new_upstream_files,
        deletions=deletions,
        skipped=skipped,
        errors=errors,
        pipeline_version_changed=pipeline_version_changed,
    )


def has_changes(summary: ChangeSummary) -> bool:
    """Return ``True`` if *summary* reports any drift."""
    return summary.has_changes
