# src/imgit/config/loaders.py

"""Configuration loaders for environment and files.

Pure data loading functions that extract configuration values from various
sources without performing validation. Each loader returns plain
dictionaries that the core resolver merges; the ``Config`` schema coerces
strings into their field types.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

import tomllib

from . import utils

log = logging.getLogger(__name__)

# Meta/control variables that steer resolution but aren't config fields
META_ENV_FIELDS = {"pyproject_path"}

# Env values that clear an optional field (e.g. IMGIT_ENCODE__VIDEO=none).
_NULL_VALUES = {"", "none", "null"}

# --- Environment Loading ---


def load_env() -> Mapping[str, Any]:
    """Load configuration from ``IMGIT_*`` environment variables.

    Nested options use a double underscore: ``IMGIT_DOWNLOAD__RETRIES=5``
    becomes ``{"download": {"retries": "5"}}``. ``none``/``null``/empty values
    map to None so optional options can be disabled from the environment.
    `.env` loading happens at higher levels; this function only reads
    `os.environ`.
    """
    config: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(utils.ENV_PREFIX):
            continue
        name = key[len(utils.ENV_PREFIX) :].lower()
        if not name or name in META_ENV_FIELDS:
            continue
        path = [p for p in name.split(utils.ENV_NESTING) if p]
        target = config
        for part in path[:-1]:
            nested = target.get(part)
            if not isinstance(nested, dict):
                nested = {}
                target[part] = nested
            target = nested
        target[path[-1]] = _coerce_env_value(value)
    return config


def _coerce_env_value(value: str) -> str | None:
    return None if value.strip().lower() in _NULL_VALUES else value


# --- File loading helpers ---


def _read_toml(path: Path) -> dict[str, Any]:
    """Read a TOML file, returning an empty dict when missing or invalid."""
    if not path.exists():
        return {}

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        log.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}


def load_pyproject(path: Path | None = None) -> Mapping[str, Any]:
    """Load the ``[tool.imgit]`` table from pyproject.toml.

    Args:
        path: Explicit file to read; defaults to ``./pyproject.toml`` or the
            ``IMGIT_PYPROJECT_PATH`` override.
    """
    data = _read_toml(path or utils.get_pyproject_path())
    section = data.get("tool", {}).get(utils.CONFIG_TOOL_NAME, {})
    return dict(section) if isinstance(section, dict) else {}
