"""Tests for the upstream-sync command line.

GitHubClient is replaced with FakeContentSource; setup_logging is patched
so the CLI does not reconfigure pytest's log capture.
"""

import json
from unittest.mock import patch

import pytest
from conftest import (
    ROOT,
    FakeContentSource,
    make_entry,
    make_manifest_data,
    write_manifest,
)

from upstream_sync.cli import build_parser, main
from upstream_sync.sync.hashing import hash_content

ALPHA = f"{ROOT}skills/alpha/SKILL.md"


@pytest.fixture(autouse=True)
def mock_setup_logging():
    with patch("upstream_sync.cli.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write(workdir, content_hash: str) -> str:
    definitions = {
        "skills/alpha": make_entry(
            "skills/alpha", upstream_content_hash=content_hash
        )
    }
    path = write_manifest(
        workdir / "sync-manifest.json", make_manifest_data(definitions)
    )
    return str(path)


def _run(argv, client):
    with patch("upstream_sync.cli.GitHubClient", return_value=client):
        return main(argv)


class TestParser:
    def test_check_defaults(self):
        args = build_parser().parse_args(["check"])
        assert args.format == "json"
        assert args.no_reconcile is False
        assert args.manifest is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "upstream-sync version" in capsys.readouterr().out


class TestCheckCommand:
    def test_no_changes_exit_zero(self, workdir, capsys):
        manifest = _write(workdir, hash_content("same"))
        client = FakeContentSource(files={ALPHA: "same"})

        assert _run(["check", "--manifest", manifest], client) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["statusName"] == "no_changes"
        assert data["summary"]["hashChanges"] == []

    def test_changes_exit_one(self, workdir, capsys):
        manifest = _write(workdir, hash_content("old"))
        client = FakeContentSource(files={ALPHA: "new"})

        assert _run(["check", "--manifest", manifest], client) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["summary"]["hashChanges"] == ["skills/alpha"]

    def test_text_format(self, workdir, capsys):
        manifest = _write(workdir, hash_content("old"))
        client = FakeContentSource(files={ALPHA: "new"})

        _run(["check", "--manifest", manifest, "--format", "text"], client)
        out = capsys.readouterr().out
        assert "Changed upstream:" in out
        assert out.rstrip().endswith("Status: CHANGES_DETECTED")

    def test_no_reconcile(self, workdir, capsys):
        manifest = _write(workdir, hash_content("old"))
        client = FakeContentSource(files={ALPHA: "new"})

        _run(["check", "--manifest", manifest, "--no-reconcile"], client)
        assert json.loads(capsys.readouterr().out)["outcomes"] == []
        assert all(ref is None for _, ref in client.blob_calls)

    def test_manifest_from_env(self, workdir, monkeypatch, capsys):
        manifest = _write(workdir, hash_content("same"))
        monkeypatch.setenv("UPSTREAM_SYNC_MANIFEST", manifest)
        client = FakeContentSource(files={ALPHA: "same"})

        assert _run(["check"], client) == 0

    def test_missing_manifest_exit_two(self, workdir, capsys):
        code = _run(
            ["check", "--manifest", str(workdir / "absent.json")],
            FakeContentSource(),
        )
        assert code == 2
        data = json.loads(capsys.readouterr().out)
        assert data["fatalError"]["kind"] == "manifest"

    def test_inventory_failure_exit_two(self, workdir, capsys):
        manifest = _write(workdir, hash_content("same"))
        client = FakeContentSource(inventory_error=True)
        assert _run(["check", "--manifest", manifest], client) == 2

    def test_invalid_config_exit_two(self, workdir, capsys):
        manifest = _write(workdir, hash_content("same"))
        code = _run(
            ["check", "--manifest", manifest, "--api-url", "nope"],
            FakeContentSource(),
        )
        assert code == 2
        assert capsys.readouterr().out == ""

    def test_unexpected_exception_exit_two(self, workdir):
        manifest = _write(workdir, hash_content("same"))
        with patch(
            "upstream_sync.cli.UpstreamChecker.run",
            side_effect=RuntimeError("boom"),
        ):
            code = _run(["check", "--manifest", manifest], FakeContentSource())
        assert code == 2


class TestLoggingFromConfigFile:
    def _config(self, workdir, text: str) -> None:
        project = workdir / ".upstream_sync"
        project.mkdir()
        (project / "config.yml").write_text(text, encoding="utf-8")

    def test_logging_section_passed_to_setup(
        self, workdir, mock_setup_logging
    ):
        manifest = _write(workdir, hash_content("same"))
        log_file = str(workdir / "check.log")
        self._config(
            workdir, f"logging:\n  level: DEBUG\n  file: {log_file}\n"
        )
        _run(["check", "--manifest", manifest], FakeContentSource())

        kwargs = mock_setup_logging.call_args.kwargs
        assert kwargs["level"] == "DEBUG"
        assert kwargs["config_log_file"] == log_file
        assert kwargs["log_file"] is None

    def test_without_config_file_mode_defaults_apply(
        self, workdir, mock_setup_logging
    ):
        manifest = _write(workdir, hash_content("same"))
        _run(["check", "--manifest", manifest], FakeContentSource())

        kwargs = mock_setup_logging.call_args.kwargs
        assert kwargs["level"] is None
        assert kwargs["config_log_file"] is None

    def test_invalid_config_file_logs_then_exits_two(
        self, workdir, mock_setup_logging, capsys
    ):
        manifest = _write(workdir, hash_content("same"))
        self._config(workdir, "upstream:\n  max_parallel_requests: 99\n")
        code = _run(["check", "--manifest", manifest], FakeContentSource())

        assert code == 2
        mock_setup_logging.assert_called_once()
        assert capsys.readouterr().out == ""
