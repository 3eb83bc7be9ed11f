"""imgit: optimize media referenced from documents during a static-site build.

Public API:
    - run(): Transform one document with a fresh pipeline run
    - Pipeline: A run shared by several documents (one cache load and save)
    - resolve_config() / Config: Configuration
    - Plugin, Handled, NOT_HANDLED: Build-phase extension point
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from imgit.asset import (
    AssetContent,
    AssetSize,
    AssetSyntax,
    AssetType,
    BuiltAsset,
    CapturedAsset,
    DownloadedAsset,
    EncodedAsset,
    ProbedAsset,
    ResolvedAsset,
)
from imgit.cache import CacheStore
from imgit.config import Config, resolve_config
from imgit.context import Context
from imgit.errors import (
    ConfigurationError,
    DownloadError,
    ImgitError,
    InternalError,
    PluginError,
    RateLimitError,
    ToolError,
)
from imgit.pipeline import Pipeline
from imgit.plugins import NOT_HANDLED, Handled, NotHandled, Plugin

if TYPE_CHECKING:
    import httpx

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("imgit")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("imgit").addHandler(logging.NullHandler())


async def run(
    path: str,
    content: str,
    *,
    config: Config,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Transform a single document in its own pipeline run.

    Args:
        path: Document path, passed through to every phase.
        content: Document text.
        config: Resolved configuration.
        client: Optional HTTP client; one is created and closed when omitted.

    Returns:
        The document with every captured asset replaced by its markup.

    Example:
        config = resolve_config({"width": 720})
        html = await run("index.md", "![Logo](/assets/logo.png)", config=config)
    """
    async with Pipeline(config, client=client) as pipeline:
        return await pipeline.transform(path, content)


__all__ = [
    "NOT_HANDLED",
    "AssetContent",
    "AssetSize",
    "AssetSyntax",
    "AssetType",
    "BuiltAsset",
    "CacheStore",
    "CapturedAsset",
    "Config",
    "ConfigurationError",
    "Context",
    "DownloadError",
    "DownloadedAsset",
    "EncodedAsset",
    "Handled",
    "ImgitError",
    "InternalError",
    "NotHandled",
    "Pipeline",
    "Plugin",
    "PluginError",
    "ProbedAsset",
    "RateLimitError",
    "ResolvedAsset",
    "ToolError",
    "resolve_config",
    "run",
]
