# src/imgit/config/__init__.py

"""Configuration management for imgit.

Resolve-once, freeze-then-flow: configuration is resolved at the entry point
into an immutable ``Config`` that flows through every pipeline phase.

Key exports:
- resolve_config: layered resolution (pyproject, env, overrides)
- Config: Pydantic schema for validation and defaults
- option models for the nested sections
"""

# ruff: noqa: I001

from .core import (
    POSTER_AUTO,
    BuildOptions,
    Config,
    DownloadOptions,
    EncodeOptions,
    LogOptions,
    ProbeOptions,
    TransformOptions,
    resolve_config,
)
from .loaders import load_env, load_pyproject
from .utils import field_spec_hint

__all__ = [  # noqa: RUF022
    "resolve_config",
    "Config",
    "POSTER_AUTO",
    "BuildOptions",
    "DownloadOptions",
    "EncodeOptions",
    "LogOptions",
    "ProbeOptions",
    "TransformOptions",
    "load_env",
    "load_pyproject",
    "field_spec_hint",
]
