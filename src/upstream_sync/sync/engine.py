"""Check engine that orchestrates one upstream drift detection run.

The ``UpstreamChecker`` ties together the manifest store, source registry,
content fetcher, key resolver, classifier and reconciler.  It:

1. Loads and validates the manifest.
2. Resolves the source to check.
3. Fetches the upstream inventory (fatal on failure).
4. Fetches the blobs needed to hash tracked definitions, concurrently.
5. Classifies drift into a ``ChangeSummary``.
6. Fetches base content for changed definitions and reconciles them
   against their manual overrides.
7. Builds and returns a ``CheckReport``.

The engine never writes the manifest: a run is read-only and may be
repeated at any time.  Global failures end the run with
``CheckReport.fatal_error``; per-definition failures are recorded in the
summary and do not affect other definitions.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from ..config import PIPELINE_VERSION
from .classifier import compute_check_summary
from .errors import FetchError, SyncError
from .fetcher import ContentSource, fetch_blobs, inventory_paths
from .hashing import entry_content_paths, required_content_paths
from .keys import DefinitionLayout
from .models import (
    ChangeSummary,
    CheckReport,
    DefinitionError,
    Manifest,
    ReconcileOutcome,
    Source,
)
from .reconciler import reconcile
from .registry import SourceRegistry
from .state import ManifestStore

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class UpstreamChecker:
    """Run one drift check of a manifest against its upstream source.

    Args:
        client: Content source used for inventory and blob fetches.
        manifest_path: Path of the manifest JSON file.
        source_id: Source to check; ``None`` selects the manifest's only
            source.
        pipeline_version: Current output format version.
        layout: Key layout; defaults to the standard content root.
        max_parallel: Maximum concurrent blob fetches.
        reconcile: Whether to reconcile changed definitions against their
            overrides.
    """

    def __init__(
        self,
        client: ContentSource,
        manifest_path: Path | str,
        source_id: str | None = None,
        pipeline_version: int = PIPELINE_VERSION,
        layout: DefinitionLayout | None = None,
        max_parallel: int = 5,
        reconcile: bool = True,
    ) -> None:
        self.client = client
        self.manifest_path = Path(manifest_path)
        self.source_id = source_id
        self.pipeline_version = pipeline_version
        self.layout = layout or DefinitionLayout()
        self.max_parallel = max_parallel
        self.reconcile = reconcile
        self.store = ManifestStore()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> CheckReport:
        """Execute a full check.

        Returns:
            A ``CheckReport``; ``report.status`` gives the process status.
        """
        started_at = _now()

        # Step 1: Load manifest
        manifest = self.store.read(self.manifest_path)
        if manifest is None:
            return self._fatal(
                started_at,
                "manifest",
                f"Manifest {self.manifest_path} is missing or invalid",
            )

        # Step 2: Resolve source
        try:
            source = SourceRegistry.from_manifest(manifest).resolve(
                self.source_id
            )
        except SyncError as exc:
            return self._fatal(started_at, exc.kind, str(exc))

        # Step 3: Inventory
        try:
            items = self.client.fetch_inventory(source)
        except FetchError as exc:
            return self._fatal(
                started_at,
                exc.kind,
                f"Inventory fetch failed for {source.repo}: {exc}",
                source_id=source.id,
            )

        paths = inventory_paths(items)
        upstream_keys = self.layout.upstream_keys(paths)
        logger.info(
            "%s@%s: %d blobs, %d definitions upstream",
            source.repo,
            source.branch,
            len(paths),
            len(upstream_keys),
        )

        # Step 4: Blobs for hashing
        batch = fetch_blobs(
            self.client,
            source,
            required_content_paths(manifest, upstream_keys),
            self.max_parallel,
        )

        # Step 5: Classify
        summary = compute_check_summary(
            manifest,
            upstream_keys,
            batch.contents,
            paths,
            self.pipeline_version,
            layout=self.layout,
            failures=batch.failures,
        )
        logger.info(
            "Check summary: %d changed, %d new, %d deleted, %d skipped, "
            "%d errors",
            len(summary.hash_changes),
            len(summary.new_upstream),
            len(summary.deletions),
            len(summary.skipped),
            len(summary.errors),
        )

        # Step 6: Reconcile
        outcomes: list[ReconcileOutcome] = []
        if self.reconcile:
            base_contents = self._fetch_base_contents(
                manifest, summary, source
            )
            outcomes = reconcile(
                summary, manifest, base_contents, batch.contents
            )

        return CheckReport(
            source_id=source.id,
            summary=summary,
            outcomes=outcomes,
            started_at=started_at,
            completed_at=_now(),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_base_contents(
        self, manifest: Manifest, summary: ChangeSummary, source: Source
    ) -> dict[str, str]:
        """Fetch changed definitions' content at their recorded commits.

        A failed or absent base file only leaves that file out; the
        reconciler then treats the definition's base as unavailable.
        """
        by_ref: dict[str, set[str]] = defaultdict(set)
        for key in summary.hash_changes:
            entry = manifest.definitions[key]
            if not entry.upstream_commit_ref:
                continue
            by_ref[entry.upstream_commit_ref].update(
                entry_content_paths(entry)
            )

        contents: dict[str, str] = {}
        for ref in sorted(by_ref):
            batch = fetch_blobs(
                self.client,
                source,
                sorted(by_ref[ref]),
                self.max_parallel,
                ref=ref,
            )
            for path in batch.failures:
                logger.warning("Base content unavailable for %s@%s", path, ref)
            contents.update(batch.contents)
        return contents

    def _fatal(
        self,
        started_at: str,
        kind: str,
        message: str,
        source_id: str = "",
    ) -> CheckReport:
        logger.error("Check aborted (%s): %s", kind, message)
        return CheckReport(
            source_id=source_id,
            fatal_error=DefinitionError(kind=kind, message=message),
            started_at=started_at,
            completed_at=_now(),
        )
