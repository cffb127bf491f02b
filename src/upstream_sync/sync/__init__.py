"""Upstream definition drift detection and override reconciliation.

Public API for checking imported definitions against the upstream
repository they were copied from.

Architecture
------------
Every imported definition is recorded in a JSON **manifest** together with
the SHA-256 fingerprint of its upstream content at import time.  A check
run re-fetches the upstream tree, recomputes fingerprints and compares:
the manifest is only read, never written.  Changed definitions are then
reconciled field by field against their recorded manual overrides.

Modules:

- ``engine``     -- ``UpstreamChecker``: orchestrates one check run.
- ``state``      -- ``ManifestStore``: load/validate/save the manifest.
- ``registry``   -- ``SourceRegistry``: source id to repository lookup.
- ``fetcher``    -- ``ContentSource`` protocol, concurrent ``fetch_blobs``.
- ``keys``       -- ``DefinitionLayout``: path to definition key mapping.
- ``hashing``    -- content fingerprints.
- ``classifier`` -- ``compute_check_summary``.
- ``fields``     -- field decomposition of definition content.
- ``reconciler`` -- override merge matrix.
- ``reporter``   -- status mapping, JSON and text formatting.
- ``models``     -- data contracts.
- ``errors``     -- exception taxonomy.

Usage example
-------------
::

    from upstream_sync.config import load_config
    from upstream_sync.core.client import GitHubClient
    from upstream_sync.sync import UpstreamChecker, format_check_report

    config = load_config()
    checker = UpstreamChecker(
        client=GitHubClient(config),
        manifest_path=config.manifest_path,
    )
    report = checker.run()
    print(format_check_report(report))
    raise SystemExit(int(report.status))
"""

from .classifier import compute_check_summary, has_changes
from .engine import UpstreamChecker
from .models import (
    ChangeSummary,
    CheckReport,
    CheckStatus,
    Manifest,
    ManifestEntry,
    ReconcileAction,
    ReconcileOutcome,
)
from .reconciler import reconcile, reconcile_definition
from .reporter import (
    exit_status,
    format_check_report,
    report_to_json,
    summary_to_json,
)
from .state import ManifestStore

__all__ = [
    "ChangeSummary",
    "CheckReport",
    "CheckStatus",
    "Manifest",
    "ManifestEntry",
    "ManifestStore",
    "ReconcileAction",
    "ReconcileOutcome",
    "UpstreamChecker",
    "compute_check_summary",
    "exit_status",
    "format_check_report",
    "has_changes",
    "reconcile",
    "reconcile_definition",
    "report_to_json",
    "summary_to_json",
]
