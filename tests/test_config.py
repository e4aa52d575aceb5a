"""
Tests for probe settings — YAML loading, discovery and env overrides.
"""

import textwrap
from pathlib import Path

import pytest

from compiler_probe.core.config.loader import (
    SETTINGS_FILE,
    ConfigError,
    find_settings_file,
    load_settings,
)
from compiler_probe.core.config.settings import DEFAULT_ENV_KEYS, ProbeSettings


@pytest.fixture
def settings_yml(tmp_path: Path) -> Path:
    content = textwrap.dedent("""\
        timeout: 3.5
        detect_linker: false
        env_keys:
          - CPATH
          - SDKROOT
    """)
    path = tmp_path / SETTINGS_FILE
    path.write_text(content)
    return path


class TestProbeSettings:
    def test_defaults(self):
        s = ProbeSettings()
        assert s.timeout == 10.0
        assert s.detect_version is True
        assert s.detect_linker is True
        assert s.temp_root is None
        assert s.env_keys == list(DEFAULT_ENV_KEYS)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            ProbeSettings(timeout=0)


class TestLoadSettings:
    def test_load_file(self, settings_yml: Path):
        s = load_settings(settings_yml, environ={})
        assert s.timeout == 3.5
        assert s.detect_linker is False
        assert s.detect_version is True
        assert s.env_keys == ["CPATH", "SDKROOT"]

    def test_nested_probe_section(self, tmp_path: Path):
        path = tmp_path / SETTINGS_FILE
        path.write_text("probe:\n  timeout: 2\n")
        assert load_settings(path, environ={}).timeout == 2.0

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / SETTINGS_FILE
        path.write_text("")
        assert load_settings(path, environ={}) == ProbeSettings()

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml", environ={})

    def test_invalid_yaml_raises(self, tmp_path: Path):
        path = tmp_path / SETTINGS_FILE
        path.write_text("timeout: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path, environ={})

    def test_non_mapping_raises(self, tmp_path: Path):
        path = tmp_path / SETTINGS_FILE
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path, environ={})

    def test_invalid_value_raises(self, tmp_path: Path):
        path = tmp_path / SETTINGS_FILE
        path.write_text("timeout: -1\n")
        with pytest.raises(ConfigError, match="Invalid probe configuration"):
            load_settings(path, environ={})

    def test_auto_search_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        assert load_settings(environ={}) == ProbeSettings()

    def test_auto_search_finds_file(self, settings_yml: Path, monkeypatch: pytest.MonkeyPatch):
        nested = settings_yml.parent / "build" / "sub"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        assert load_settings(environ={}).timeout == 3.5


class TestEnvOverrides:
    def test_env_beats_file(self, settings_yml: Path):
        s = load_settings(settings_yml, environ={"CPROBE_TIMEOUT": "1.25"})
        assert s.timeout == 1.25

    def test_bool_coercion(self, settings_yml: Path):
        s = load_settings(
            settings_yml,
            environ={"CPROBE_DETECT_VERSION": "false", "CPROBE_DETECT_LINKER": "1"},
        )
        assert s.detect_version is False
        assert s.detect_linker is True

    def test_temp_root(self, settings_yml: Path, tmp_path: Path):
        s = load_settings(settings_yml, environ={"CPROBE_TEMP_ROOT": str(tmp_path)})
        assert s.temp_root == str(tmp_path)

    def test_empty_value_ignored(self, settings_yml: Path):
        s = load_settings(settings_yml, environ={"CPROBE_TIMEOUT": ""})
        assert s.timeout == 3.5

    def test_bad_value_raises(self, settings_yml: Path):
        with pytest.raises(ConfigError):
            load_settings(settings_yml, environ={"CPROBE_TIMEOUT": "soon"})


class TestFindSettingsFile:
    def test_find_in_current_dir(self, settings_yml: Path):
        assert find_settings_file(settings_yml.parent) == settings_yml.resolve()

    def test_find_in_parent_dir(self, settings_yml: Path):
        child = settings_yml.parent / "a" / "b"
        child.mkdir(parents=True)
        assert find_settings_file(child) == settings_yml.resolve()

    def test_not_found_returns_none(self, tmp_path: Path):
        assert find_settings_file(tmp_path) is None
