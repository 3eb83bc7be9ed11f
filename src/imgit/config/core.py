# src/imgit/config/core.py

"""Core configuration schema and resolution for imgit.

This module provides:
- Single source of truth for configuration schema (``Config`` and its
  nested option models)
- Layered resolution with last-wins precedence:
  defaults < ``[tool.imgit]`` in pyproject.toml < ``IMGIT_*`` env < overrides

Configuration is resolved once at the entry point and flows through the
pipeline as an immutable value.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
import re
from typing import Any

from pydantic import (
    BaseModel,
    Field,
    InstanceOf,
    ValidationError,
    field_validator,
)

from imgit.errors import ConfigurationError
from imgit.plugins.base import Plugin

from .utils import field_spec_hint

#: Captures Markdown image syntax: ``![title](uri)``.
DEFAULT_REGEX = r"!\[(?P<title>.*?)]\((?P<uri>.+?)\)"
#: Recognizes YouTube watch links.
DEFAULT_YOUTUBE_PATTERN = r"youtube\.com/watch\?v="
#: Poster mode that extracts a unique frame for each video.
POSTER_AUTO = "auto"

DEFAULT_PROBE_ARGS = (
    "-loglevel error -select_streams v -show_entries stream=width,height -of csv=p=0:s=x"
)
DEFAULT_ENCODE_IMAGE = (
    "-loglevel error -c:v librav1e -rav1e-params speed=4:quantizer=100:still_picture=true"
)
DEFAULT_ENCODE_ANIMATION = (
    "-loglevel error -c:v librav1e -rav1e-params speed=6:quantizer=150"
)
DEFAULT_ENCODE_VIDEO = "-loglevel error -c:v libsvtav1 -preset 4"

BuildFn = Callable[..., Awaitable[str]]
PhaseFn = Callable[..., Awaitable[Any]]
LocalRootFn = Callable[..., Path]

_MODEL_CONFIG: Any = {"frozen": True, "extra": "forbid"}


def _normalize_extensions(v: Any) -> Any:
    if isinstance(v, str):
        v = v.split(",")
    if isinstance(v, (list, tuple)):
        return tuple(
            str(ext).strip().lower().lstrip(".") for ext in v if str(ext).strip()
        )
    return v


class LogOptions(BaseModel):
    """Which pipeline log channels are emitted."""

    #: Informational messages, such as which assets were downloaded and encoded.
    info: bool = True
    #: Non-fatal issues, such as a failed probe or a retried download.
    warn: bool = True
    #: Errors associated with a failed procedure.
    err: bool = True

    model_config = _MODEL_CONFIG


class DownloadOptions(BaseModel):
    """Remote asset fetching behaviour."""

    #: Seconds one fetch attempt may take before it is aborted.
    timeout: float = Field(default=30, gt=0)
    #: How many failed attempts are tolerated per destination before giving up.
    retries: int = Field(default=3, ge=0)
    #: Upper bound of the random wait between attempts, in seconds.
    delay: float = Field(default=6, ge=0)
    #: Maps a captured asset to the local directory it is mirrored to;
    #: ``(asset, config) -> Path``. Uses the serve/local mapping when None.
    local_root: LocalRootFn | None = None

    model_config = _MODEL_CONFIG


class ProbeOptions(BaseModel):
    """ffprobe invocation used to measure assets."""

    args: str = DEFAULT_PROBE_ARGS

    model_config = _MODEL_CONFIG


class EncodeOptions(BaseModel):
    """ffmpeg arguments per asset kind; None disables encoding of that kind."""

    image: str | None = DEFAULT_ENCODE_IMAGE
    animation: str | None = DEFAULT_ENCODE_ANIMATION
    video: str | None = DEFAULT_ENCODE_VIDEO

    model_config = _MODEL_CONFIG


class BuildOptions(BaseModel):
    """Markup overrides per asset kind: ``async (asset, ctx) -> str``."""

    image: BuildFn | None = None
    animation: BuildFn | None = None
    video: BuildFn | None = None
    youtube: BuildFn | None = None

    model_config = _MODEL_CONFIG


class TransformOptions(BaseModel):
    """Wholesale replacements for the pipeline phases.

    Signatures mirror the default phase functions, each receiving the document
    path first and the run context last.
    """

    capture: PhaseFn | None = None
    download: PhaseFn | None = None
    probe: PhaseFn | None = None
    encode: PhaseFn | None = None
    build: PhaseFn | None = None
    rewrite: PhaseFn | None = None

    model_config = _MODEL_CONFIG


class Config(BaseModel):
    """Immutable imgit configuration.

    Example:
        config = Config(local="./public/assets", serve="/assets", width=720)
    """

    #: Local directory where asset files are mirrored and encoded.
    local: Path = Path("./public/assets")
    #: Directory holding persisted cache categories.
    cache: Path = Path("./.cache/imgit")
    #: URL prefix under which ``local`` is served (relative or absolute for CDNs).
    serve: str = "/assets"
    #: Subdirectory of ``local`` receiving assets from outside ``serve``.
    remote: str = "remote"
    #: Pattern capturing asset syntax; needs ``title`` and ``uri`` groups.
    regex: re.Pattern[str] = re.compile(DEFAULT_REGEX)
    #: Text appended to the base name of encoded files.
    suffix: str = "-imgit"
    #: Width limit for rendered assets, in pixels; no limit when None.
    width: int | None = Field(default=None, gt=0)
    image: tuple[str, ...] = ("png", "jpg", "jpeg", "webp")
    animation: tuple[str, ...] = ("gif",)
    video: tuple[str, ...] = ("mp4",)
    #: Whether YouTube watch links are captured as external-link assets.
    youtube: bool = True
    youtube_pattern: re.Pattern[str] = re.compile(DEFAULT_YOUTUBE_PATTERN)
    #: ``"auto"`` extracts a poster per video, any other string is a shared
    #: poster URL for all videos, None disables posters.
    poster: str | None = POSTER_AUTO
    #: Max concurrent fetches/probes/encodes per run; 0 means unbounded.
    concurrency: int = Field(default=8, ge=0)
    #: Pipeline log channels; None silences all of them.
    log: LogOptions | None = Field(default_factory=LogOptions)
    download: DownloadOptions = Field(default_factory=DownloadOptions)
    probe: ProbeOptions = Field(default_factory=ProbeOptions)
    encode: EncodeOptions = Field(default_factory=EncodeOptions)
    build: BuildOptions = Field(default_factory=BuildOptions)
    transform: TransformOptions = Field(default_factory=TransformOptions)
    plugins: tuple[InstanceOf[Plugin], ...] = ()

    model_config = {**_MODEL_CONFIG, "arbitrary_types_allowed": True}

    @field_validator("regex")
    @classmethod
    def require_capture_groups(cls, v: re.Pattern[str]) -> re.Pattern[str]:
        """Reject capture patterns without the ``title`` and ``uri`` groups."""
        missing = {"title", "uri"} - set(v.groupindex)
        if missing:
            raise ValueError(
                f"regex must define named groups 'title' and 'uri' (missing: {', '.join(sorted(missing))})"
            )
        return v

    @field_validator("image", "animation", "video", mode="before")
    @classmethod
    def normalize_extensions(cls, v: Any) -> Any:
        """Accept lists or comma-separated strings; strip dots, lowercase."""
        return _normalize_extensions(v)

    @field_validator("serve")
    @classmethod
    def normalize_serve(cls, v: str) -> str:
        """Drop a trailing slash so prefixes join predictably."""
        v = v.strip()
        return v.rstrip("/") if len(v) > 1 else v

    @field_validator("poster", mode="before")
    @classmethod
    def normalize_poster(cls, v: Any) -> Any:
        """Treat blank strings as a disabled poster."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


# --- Public resolution API ---

_DOTENV_LOADED = False


def _try_load_dotenv() -> None:
    """Load a .env file once so ``IMGIT_*`` variables can live there."""
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    from dotenv import load_dotenv

    load_dotenv()
    _DOTENV_LOADED = True


def resolve_config(
    overrides: Mapping[str, Any] | None = None,
    *,
    use_files: bool = True,
    use_env: bool = True,
) -> Config:
    """Resolve configuration from all sources into a ``Config``.

    Follows the precedence: defaults < pyproject.toml < env < overrides.

    Args:
        overrides: Programmatic configuration overrides.
        use_files: Whether to read ``[tool.imgit]`` from pyproject.toml.
        use_env: Whether to read ``IMGIT_*`` variables (and a .env file).

    Raises:
        ConfigurationError: If configuration validation fails.
    """
    from .loaders import load_env, load_pyproject

    layers: list[Mapping[str, Any]] = []
    if use_files:
        layers.append(load_pyproject())
    if use_env:
        _try_load_dotenv()
        layers.append(load_env())
    layers.append(overrides or {})

    merged: dict[str, Any] = {}
    for layer in layers:
        _deep_merge(merged, layer)

    try:
        return Config.model_validate(merged)
    except ValidationError as e:
        err = e.errors()[0]
        msg = err.get("msg") or "invalid value"
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        loc = ".".join(str(p) for p in err.get("loc", ()))
        raise ConfigurationError(
            f"Configuration validation failed for {loc or 'config'}: {msg}",
            hint=field_spec_hint(loc) if loc else None,
        ) from e


def _deep_merge(target: dict[str, Any], layer: Mapping[str, Any]) -> None:
    """Merge *layer* into *target*; nested mappings merge, other values replace."""
    for key, value in layer.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged = dict(current)
            _deep_merge(merged, value)
            target[key] = merged
        elif isinstance(value, Mapping):
            target[key] = dict(value)
        else:
            target[key] = value
