"""
Configuration loader — reads compiler-probe.yml into ProbeSettings.

The file is optional: with no file and no environment overrides the
defaults from ``ProbeSettings`` apply. Environment variables override
file values so CI jobs can tune timeouts without editing the repo.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from compiler_probe.core.config.settings import ProbeSettings

logger = logging.getLogger(__name__)

SETTINGS_FILE = "compiler-probe.yml"

# env var → settings field (pydantic coerces the string)
_ENV_OVERRIDES: dict[str, str] = {
    "CPROBE_TIMEOUT": "timeout",
    "CPROBE_DETECT_VERSION": "detect_version",
    "CPROBE_DETECT_LINKER": "detect_linker",
    "CPROBE_TEMP_ROOT": "temp_root",
}


class ConfigError(Exception):
    """Raised when probe configuration is invalid."""


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for compiler-probe.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to the settings file, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_settings(
    path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> ProbeSettings:
    """Load and validate probe settings.

    Args:
        path: Explicit settings file. If None, searches upward from cwd;
            a missing file is not an error.
        environ: Environment to read overrides from (default: os.environ).

    Returns:
        Validated ProbeSettings.

    Raises:
        ConfigError: If an explicit file is missing, or any file or
            override is invalid.
    """
    data: dict[str, Any] = {}

    if path is not None and not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    source = path or find_settings_file()
    if source is not None:
        data = _read_yaml(source)

    env = os.environ if environ is None else environ
    for var, field_name in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is not None and raw != "":
            logger.debug("Override %s from %s", field_name, var)
            data[field_name] = raw

    try:
        settings = ProbeSettings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid probe configuration: {e}") from e

    logger.debug(
        "Probe settings: timeout=%ss version=%s linker=%s",
        settings.timeout, settings.detect_version, settings.detect_linker,
    )
    return settings


def _read_yaml(path: Path) -> dict[str, Any]:
    logger.debug("Loading probe settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may nest everything under a "probe" key or be flat
    section = data.get("probe", data)
    if not isinstance(section, dict):
        raise ConfigError(f"Expected 'probe' to be a mapping in {path}")
    return dict(section)
