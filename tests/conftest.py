"""Shared pytest fixtures for upstream-sync tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from upstream_sync.config import Config
from upstream_sync.sync.errors import FetchError
from upstream_sync.sync.models import InventoryItem, Source

ROOT = "plugins/compound-engineering/"
COMMIT = "abc123"


class FakeContentSource:
    """In-memory ``ContentSource``.

    Args:
        files: Path to content on the source branch.
        history: Commit ref to ``{path: content}`` for ref-pinned fetches.
        failing: Paths whose fetch raises ``FetchError``.
        inventory_error: Raise ``FetchError`` from ``fetch_inventory``.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        history: dict[str, dict[str, str]] | None = None,
        failing: set[str] | None = None,
        inventory_error: bool = False,
    ) -> None:
        self.files = dict(files or {})
        self.history = history or {}
        self.failing = failing or set()
        self.inventory_error = inventory_error
        self.blob_calls: list[tuple[str, str | None]] = []
        self.inventory_calls = 0

    def fetch_inventory(self, source: Source) -> list[InventoryItem]:
        self.inventory_calls += 1
        if self.inventory_error:
            raise FetchError("HTTP 503", status=503)
        dirs = {
            path.rsplit("/", 1)[0] for path in self.files if "/" in path
        }
        items = [InventoryItem(path=d, kind="tree") for d in sorted(dirs)]
        items += [
            InventoryItem(path=p, kind="blob") for p in sorted(self.files)
        ]
        return items

    def fetch_blob(
        self, source: Source, path: str, ref: str | None = None
    ) -> str | None:
        self.blob_calls.append((path, ref))
        if path in self.failing:
            raise FetchError(f"Giving up on {path}", status=429, path=path)
        if ref is None:
            return self.files.get(path)
        return self.history.get(ref, {}).get(path)


def make_entry(key: str, **overrides) -> dict:
    """Build a raw manifest entry dict for *key* (persisted key names)."""
    is_skill = key.startswith("skills/")
    entry: dict = {
        "source": "cep",
        "upstream_path": f"{ROOT}{key}" if is_skill else f"{ROOT}{key}.md",
        "upstream_commit": COMMIT,
        "synced_at": "2026-01-10T12:00:00Z",
        "notes": "imported",
    }
    if is_skill:
        entry["files"] = ["SKILL.md"]
    entry.update(overrides)
    return entry


def make_manifest_data(
    definitions: dict[str, dict] | None = None,
    converter_version: int | None = 2,
) -> dict:
    data: dict = {
        "$schema": "./sync-manifest.schema.json",
        "sources": {
            "cep": {
                "repo": "EveryInc/compound-engineering-plugin",
                "branch": "main",
                "url": "https://github.com/EveryInc/compound-engineering-plugin",
            }
        },
        "definitions": definitions or {},
    }
    if converter_version is not None:
        data["converter_version"] = converter_version
    return data


def write_manifest(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def source() -> Source:
    return Source(
        id="cep",
        repo="EveryInc/compound-engineering-plugin",
        branch="main",
        url="https://github.com/EveryInc/compound-engineering-plugin",
    )


@pytest.fixture
def mock_config() -> Config:
    """Config with a token and no-delay backoff."""
    return Config(
        api_url="https://api.github.test",
        token="test-token",
        base_delay=0.0,
        max_delay=0.0,
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep host env vars and config files out of every test."""
    for var in (
        "GITHUB_TOKEN",
        "UPSTREAM_SYNC_API_URL",
        "UPSTREAM_SYNC_MANIFEST",
        "UPSTREAM_SYNC_SOURCE",
        "UPSTREAM_SYNC_DEBUG",
        "UPSTREAM_SYNC_MAX_PARALLEL_REQUESTS",
        "UPSTREAM_SYNC_MAX_ATTEMPTS",
        "UPSTREAM_SYNC_CONFIG",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
