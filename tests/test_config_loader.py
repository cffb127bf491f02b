"""Tests for upstream_sync.config_loader -- hierarchical config loading."""

import textwrap

import pytest

from upstream_sync.config_loader import (
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
)

# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("MY_REPO", "EveryInc/plugin")
        assert interpolate_env_vars("${MY_REPO}") == "EveryInc/plugin"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert (
            interpolate_env_vars("${UNSET_VAR_XYZ:-fallback}") == "fallback"
        )

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("MY_ATTEMPTS", "5")
        assert interpolate_env_vars("${MY_ATTEMPTS:-3}") == "5"

    def test_nested_interpolation(self, monkeypatch):
        monkeypatch.setenv("SRC", "cep")
        data = {"upstream": {"source": "${SRC}", "max_attempts": 3}}
        assert _interpolate_recursive(data) == {
            "upstream": {"source": "cep", "max_attempts": 3}
        }

    def test_lists_interpolated(self, monkeypatch):
        monkeypatch.setenv("ITEM", "x")
        assert _interpolate_recursive(["${ITEM}", 1]) == ["x", 1]


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestIncludes:
    def test_include_relative_file(self, tmp_path):
        (tmp_path / "upstream.yml").write_text("source: cep\n")
        main = tmp_path / "config.yml"
        main.write_text("upstream: !include upstream.yml\n")
        assert _load_yaml_with_includes(main) == {
            "upstream": {"source": "cep"}
        }

    def test_missing_include(self, tmp_path):
        main = tmp_path / "config.yml"
        main.write_text("upstream: !include nope.yml\n")
        with pytest.raises(FileNotFoundError, match="Include file not found"):
            _load_yaml_with_includes(main)

    def test_circular_include(self, tmp_path):
        (tmp_path / "a.yml").write_text("b: !include b.yml\n")
        (tmp_path / "b.yml").write_text("a: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            _load_yaml_with_includes(tmp_path / "a.yml")


# -------------------------------------------------------------------------
# Discovery and merge
# -------------------------------------------------------------------------


class TestDiscovery:
    def test_none_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert discover_config_files() == []
        assert load_hierarchical_config() == {}

    def test_env_var_path_first(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        explicit = tmp_path / "explicit.yml"
        explicit.write_text("upstream:\n  source: a\n")
        project = tmp_path / ".upstream_sync"
        project.mkdir()
        (project / "config.yml").write_text("upstream:\n  source: b\n")
        monkeypatch.setenv("UPSTREAM_SYNC_CONFIG", str(explicit))

        found = discover_config_files()
        assert found[0] == explicit.resolve()
        assert len(found) == 2

    def test_project_wins_over_global(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        global_dir = tmp_path / "home" / ".config" / "upstream_sync"
        global_dir.mkdir(parents=True)
        (global_dir / "config.yml").write_text(
            "upstream:\n  source: global\nlogging:\n  level: DEBUG\n"
        )
        project = tmp_path / ".upstream_sync"
        project.mkdir()
        (project / "config.yml").write_text("upstream:\n  source: project\n")

        merged = load_hierarchical_config()
        assert merged["upstream"] == {"source": "project"}
        assert merged["logging"] == {"level": "DEBUG"}

    def test_interpolation_after_merge(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("MANIFEST", "custom.json")
        project = tmp_path / ".upstream_sync"
        project.mkdir()
        (project / "config.yaml").write_text(
            textwrap.dedent(
                """\
                upstream:
                  manifest_path: ${MANIFEST}
                  source: ${SOURCE_ID:-cep}
                """
            )
        )
        merged = load_hierarchical_config()
        assert merged["upstream"] == {
            "manifest_path": "custom.json",
            "source": "cep",
        }

    def test_non_dict_root_skipped(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        project = tmp_path / ".upstream_sync"
        project.mkdir()
        (project / "config.yml").write_text("- a\n- b\n")
        assert load_hierarchical_config() == {}


class TestEnsureConfig:
    def test_creates_starter(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = ensure_config()
        assert path == tmp_path / ".upstream_sync" / "config.yml"
        assert "GITHUB_TOKEN" in path.read_text()
        # The starter is all comments, so it loads as zero-config.
        assert load_hierarchical_config() == {}

    def test_returns_existing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        project = tmp_path / ".upstream_sync"
        project.mkdir()
        existing = project / "config.yml"
        existing.write_text("upstream: {}\n")
        assert ensure_config(tmp_path / "other.yml") == existing
        assert not (tmp_path / "other.yml").exists()
