"""Phase orchestration and the per-run ``Pipeline`` object.

Each document goes through Capture → Download → Probe → Encode → Build →
Rewrite, each phase consuming the full batch of the previous one. Any phase
can be swapped out through ``config.transform``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from imgit.context import Context
from imgit.transform import build, capture, download, encode, probe, rewrite

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    import httpx

    from imgit.cache import CacheStore
    from imgit.config import Config

logger = logging.getLogger(__name__)


async def transform(path: str, content: str, ctx: Context) -> str:
    """Run all phases over one document and return the rewritten content.

    Documents without captured assets are returned unchanged.
    """
    phases = ctx.config.transform
    start = time.perf_counter()

    captured = await (phases.capture or capture)(path, content, ctx)
    if not captured:
        return content
    downloaded = await (phases.download or download)(path, captured, ctx)
    probed = await (phases.probe or probe)(path, downloaded, ctx)
    encoded = await (phases.encode or encode)(path, probed, ctx)
    built = await (phases.build or build)(path, encoded, ctx)
    result = await (phases.rewrite or rewrite)(path, content, built, ctx)

    logger.debug(
        "Transformed %s: %d asset(s) in %.2fs",
        path,
        len(captured),
        time.perf_counter() - start,
    )
    return result


class Pipeline:
    """One pipeline run: loads the cache on entry and saves it on exit.

    Example:
        async with Pipeline(resolve_config()) as pipeline:
            html = await pipeline.transform("index.md", text)
    """

    def __init__(
        self,
        config: Config,
        *,
        client: httpx.AsyncClient | None = None,
        cache: CacheStore | None = None,
        **context_kwargs: Any,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self.context = Context.create(config, client=client, cache=cache, **context_kwargs)

    async def __aenter__(self) -> Pipeline:
        self.context.cache.load()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.context.cache.save()
        finally:
            if self._owns_client:
                await self.aclose()

    async def aclose(self) -> None:
        try:
            await self.context.client.aclose()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Cleanup should never mask the primary failure.
            logger.warning("HTTP client cleanup failed: %s", e)

    async def transform(self, path: str, content: str) -> str:
        """Transform one document within this run."""
        return await transform(path, content, self.context)

    async def transform_many(self, documents: Mapping[str, str]) -> dict[str, str]:
        """Transform several documents sequentially, sharing the run's state."""
        return {path: await self.transform(path, text) for path, text in documents.items()}
