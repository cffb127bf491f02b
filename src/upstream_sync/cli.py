"""Command-line entry point for upstream drift checks.

Usage:
    upstream-sync check [--manifest PATH] [--source ID] [--format json|text]

Exit status: 0 no changes, 1 changes detected, 2 error.  The report goes to
stdout; logs go to stderr.
"""

import argparse
import json
import logging
import sys

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import load_config
from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config, to_fallbacks
from .core.client import GitHubClient
from .logger import setup_logging
from .sync.engine import UpstreamChecker
from .sync.keys import DefinitionLayout
from .sync.models import CheckStatus
from .sync.reporter import format_check_report, report_to_json

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="upstream-sync",
        description="Detect drift between imported definitions and their upstream repository",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"upstream-sync version {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser(
        "check",
        help="Compare the manifest with upstream (read-only)",
    )
    check.add_argument(
        "--manifest",
        help="Manifest path (takes precedence over UPSTREAM_SYNC_MANIFEST and config files)",
    )
    check.add_argument("--source", help="Source id to check")
    check.add_argument(
        "--api-url",
        help="GitHub API base URL (takes precedence over UPSTREAM_SYNC_API_URL)",
    )
    check.add_argument(
        "--format",
        choices=("json", "text"),
        default="json",
        help="Report format (default: json)",
    )
    check.add_argument(
        "--no-reconcile",
        action="store_true",
        help="Skip reconciliation against manual overrides",
    )
    check.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    check.add_argument(
        "--debug-format",
        choices=("text", "json"),
        default="text",
        help="Log record format (default: text)",
    )
    check.add_argument("--log-file", help="Also write logs to this file")
    return parser


def run_check(args: argparse.Namespace, unified: UnifiedConfig) -> CheckStatus:
    """Run one check from parsed arguments and print the report.

    Raises:
        ValueError: If the configuration is invalid.
    """
    config = load_config(
        api_url=args.api_url,
        manifest_path=args.manifest,
        source=args.source,
        debug=args.debug,
        yaml_fallbacks=to_fallbacks(unified),
    )

    checker = UpstreamChecker(
        client=GitHubClient(config),
        manifest_path=config.manifest_path,
        source_id=config.source,
        pipeline_version=config.pipeline_version,
        layout=DefinitionLayout(config.content_root),
        max_parallel=config.max_parallel_requests,
        reconcile=not args.no_reconcile,
    )
    report = checker.run()

    if args.format == "text":
        print(format_check_report(report))
    else:
        print(json.dumps(report_to_json(report), indent=2))

    return report.status


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command, and return the exit status."""
    args = build_parser().parse_args(argv)

    # .env before YAML so ${VAR} interpolation sees .env values
    load_dotenv()
    config_error: Exception | None = None
    try:
        unified = build_config(load_hierarchical_config())
    except (ValueError, OSError, yaml.YAMLError) as exc:
        unified, config_error = UnifiedConfig(), exc

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.debug_format,
        level=unified.logging.level,
        config_log_file=unified.logging.file,
    )
    if config_error is not None:
        logger.error("Configuration error: %s", config_error)
        return int(CheckStatus.ERROR)

    try:
        return int(run_check(args, unified))
    except ValueError as exc:
        logger.error("Configuration error: %s", exc)
        return int(CheckStatus.ERROR)
    except Exception:
        logger.exception("Upstream check failed")
        return int(CheckStatus.ERROR)


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
