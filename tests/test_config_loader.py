"""Tests for linkding_sync.config_loader - YAML config discovery and merge."""

import textwrap

import pytest
import yaml

from linkding_sync.config_loader import (
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    resolve_config_path,
)
from linkding_sync.exceptions import ConfigurationError


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run with an empty CWD and HOME and no explicit config path."""
    cwd = tmp_path / "project"
    home = tmp_path / "home"
    cwd.mkdir()
    home.mkdir()
    monkeypatch.chdir(cwd)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("LINKDING_SYNC_CONFIG", raising=False)
    return cwd, home


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    def test_set_var(self, monkeypatch):
        monkeypatch.setenv("LD_HOST", "links.local")
        assert interpolate_env_vars("https://${LD_HOST}/") == "https://links.local/"

    def test_unset_var_is_empty(self, monkeypatch):
        monkeypatch.delenv("LD_UNSET", raising=False)
        assert interpolate_env_vars("${LD_UNSET}") == ""

    def test_default_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("LD_UNSET", raising=False)
        monkeypatch.setenv("LD_EMPTY", "")
        assert interpolate_env_vars("${LD_UNSET:-a}") == "a"
        assert interpolate_env_vars("${LD_EMPTY:-b}") == "b"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("LD_DELAY", "1")
        assert interpolate_env_vars("${LD_DELAY:-0.25}") == "1"

    def test_unterminated_reference_kept(self):
        assert interpolate_env_vars("${LD_OPEN") == "${LD_OPEN"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("LD_TOKEN", "secret")
        data = {"linkding": {"token": "${LD_TOKEN}", "insecure": False}, "x": ["${LD_TOKEN}", 3]}
        assert _interpolate_recursive(data) == {
            "linkding": {"token": "secret", "insecure": False},
            "x": ["secret", 3],
        }


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestInclude:
    def test_relative_include(self, tmp_path):
        _write(tmp_path / "secrets.yml", "token: abc\n")
        main = _write(tmp_path / "config.yml", "linkding: !include secrets.yml\n")
        assert _load_yaml_with_includes(main) == {"linkding": {"token": "abc"}}

    def test_nested_include(self, tmp_path):
        _write(tmp_path / "inner" / "c.yml", "value: 1\n")
        _write(tmp_path / "inner" / "b.yml", "c: !include c.yml\n")
        main = _write(tmp_path / "a.yml", "b: !include inner/b.yml\n")
        assert _load_yaml_with_includes(main) == {"b": {"c": {"value": 1}}}

    def test_missing_include(self, tmp_path):
        main = _write(tmp_path / "config.yml", "x: !include missing.yml\n")
        with pytest.raises(ConfigurationError, match="missing.yml"):
            _load_yaml_with_includes(main)

    def test_circular_include(self, tmp_path):
        _write(tmp_path / "a.yml", "x: !include b.yml\n")
        _write(tmp_path / "b.yml", "y: !include a.yml\n")
        with pytest.raises(ConfigurationError, match="Circular include"):
            _load_yaml_with_includes(tmp_path / "a.yml")

    def test_invalid_yaml(self, tmp_path):
        main = _write(tmp_path / "config.yml", "linkding: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            _load_yaml_with_includes(main)

    def test_global_safe_loader_untouched(self, tmp_path):
        with pytest.raises(yaml.constructor.ConstructorError):
            yaml.safe_load("x: !include other.yml\n")


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []

    def test_order(self, isolated, tmp_path, monkeypatch):
        cwd, home = isolated
        explicit = _write(tmp_path / "explicit.yml", "{}\n")
        project = _write(cwd / ".linkding_sync" / "config.yml", "{}\n")
        alt = _write(cwd / ".linkding_sync" / "config.yaml", "{}\n")
        xdg = _write(home / ".config" / "linkding_sync" / "config.yml", "{}\n")
        monkeypatch.setenv("LINKDING_SYNC_CONFIG", str(explicit))

        assert discover_config_files() == [explicit, project, alt, xdg]

    def test_missing_explicit_path_skipped(self, isolated, tmp_path, monkeypatch):
        monkeypatch.setenv("LINKDING_SYNC_CONFIG", str(tmp_path / "nope.yml"))
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    def test_zero_config(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_overrides_global_per_key(self, isolated):
        cwd, home = isolated
        _write(
            home / ".config" / "linkding_sync" / "config.yml",
            """\
            linkding:
              url: https://global.example.com
              token: global-token
            sync:
              sync_tag: global
            """,
        )
        _write(
            cwd / ".linkding_sync" / "config.yml",
            """\
            linkding:
              url: https://project.example.com
            """,
        )

        assert load_hierarchical_config() == {
            "linkding": {
                "url": "https://project.example.com",
                "token": "global-token",
            },
            "sync": {"sync_tag": "global"},
        }

    def test_interpolation_after_merge(self, isolated, monkeypatch):
        cwd, _ = isolated
        monkeypatch.setenv("LD_TEST_TOKEN", "from-env")
        _write(
            cwd / ".linkding_sync" / "config.yml",
            "linkding:\n  token: ${LD_TEST_TOKEN}\n",
        )
        assert load_hierarchical_config()["linkding"]["token"] == "from-env"

    def test_non_mapping_root_skipped(self, isolated):
        cwd, _ = isolated
        _write(cwd / ".linkding_sync" / "config.yml", "- just\n- a list\n")
        assert load_hierarchical_config() == {}

    def test_empty_file(self, isolated):
        cwd, _ = isolated
        _write(cwd / ".linkding_sync" / "config.yml", "")
        assert load_hierarchical_config() == {}


# -------------------------------------------------------------------------
# Bootstrapping
# -------------------------------------------------------------------------


class TestEnsureConfig:
    def test_resolve_default_path(self, isolated):
        cwd, _ = isolated
        assert resolve_config_path() == cwd / ".linkding_sync" / "config.yml"

    def test_creates_starter(self, isolated):
        cwd, _ = isolated
        path = ensure_config()
        assert path == cwd / ".linkding_sync" / "config.yml"
        text = path.read_text(encoding="utf-8")
        assert "LINKDING_TOKEN" in text
        assert "sync_folder" in text
        # Everything is commented out.
        assert yaml.safe_load(text) is None

    def test_existing_file_untouched(self, isolated):
        cwd, _ = isolated
        existing = _write(cwd / ".linkding_sync" / "config.yaml", "sync: {}\n")
        assert ensure_config() == existing
        assert existing.read_text(encoding="utf-8") == "sync: {}\n"

    def test_explicit_target(self, isolated, tmp_path):
        target = tmp_path / "elsewhere" / "deep" / "config.yml"
        assert ensure_config(target) == target
        assert target.is_file()
