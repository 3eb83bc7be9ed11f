# src/imgit/config/utils.py

"""Configuration utilities and shared constants.

Pure helpers that can be imported without creating circular dependencies.
"""

from __future__ import annotations

import os
from pathlib import Path

# --- Constants ---

ENV_PREFIX = "IMGIT_"
#: Separates nested option names in environment variables,
#: e.g. ``IMGIT_DOWNLOAD__RETRIES=5``.
ENV_NESTING = "__"
CONFIG_TOOL_NAME = "imgit"

PYPROJECT_PATH_VAR = "IMGIT_PYPROJECT_PATH"

# --- Path Utilities ---


def get_pyproject_path() -> Path:
    """Return path to the project pyproject.toml, honoring the env override."""
    if override := os.environ.get(PYPROJECT_PATH_VAR):
        return Path(override)
    return Path.cwd() / "pyproject.toml"


# --- Field Specification Helpers ---


def field_spec_hint(field: str) -> str:
    """Return a compact hint for setting a config field via env or files."""
    parts = field.split(".")
    env_key = ENV_PREFIX + ENV_NESTING.join(p.upper() for p in parts)
    table = ".".join([CONFIG_TOOL_NAME, *parts[:-1]])
    return f"Set {env_key} or [tool.{table}] {parts[-1]} in pyproject.toml."
