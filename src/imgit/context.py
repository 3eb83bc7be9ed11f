"""Per-run state shared by the transform phases.

One ``Context`` is created for each pipeline run: it owns the cache store,
the HTTP client, the in-flight registries and the retry counters. Nothing
here is module-global, so independent runs never share state.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from imgit._singleflight import SingleFlight
from imgit.cache import SIZE, CacheStore
from imgit.log import PipelineLog
from imgit.retry import RetryCounter

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable
    from pathlib import Path

    from imgit.asset import AssetSize
    from imgit.config import Config
    from imgit.plugins.base import Builder, Resolver


@dataclass
class Context:
    """Run-scoped collaborators handed to every phase and plugin strategy."""

    config: Config
    cache: CacheStore
    client: httpx.AsyncClient
    log: PipelineLog
    #: Awaitable used for backoff and rate-limit waits.
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    downloads: SingleFlight[Path, Path] = field(default_factory=SingleFlight)
    probes: SingleFlight[str, AssetSize] = field(default_factory=SingleFlight)
    encodes: SingleFlight[Path, Path | None] = field(default_factory=SingleFlight)
    retries: RetryCounter = field(default_factory=RetryCounter)
    _slots: asyncio.Semaphore | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.cache.register(SIZE)
        for plugin in self.config.plugins:
            for category in plugin.cache:
                self.cache.register(category)
        if self.config.concurrency > 0:
            self._slots = asyncio.Semaphore(self.config.concurrency)

    @classmethod
    def create(
        cls,
        config: Config,
        *,
        client: httpx.AsyncClient | None = None,
        cache: CacheStore | None = None,
        **kwargs: Any,
    ) -> Context:
        """Build a context with default collaborators for *config*."""
        return cls(
            config=config,
            cache=cache if cache is not None else CacheStore(config.cache),
            client=client if client is not None else default_client(config),
            log=PipelineLog(config.log),
            **kwargs,
        )

    @property
    def resolvers(self) -> tuple[Resolver, ...]:
        """Plugin resolvers in registration order."""
        return tuple(r for p in self.config.plugins for r in p.resolvers)

    @property
    def builders(self) -> tuple[Builder, ...]:
        """Plugin builders in registration order."""
        return tuple(b for p in self.config.plugins for b in p.builders)

    @contextlib.asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one of the run's concurrency slots (no-op when unbounded)."""
        if self._slots is None:
            yield
            return
        async with self._slots:
            yield


def default_client(config: Config) -> httpx.AsyncClient:
    """HTTP client whose socket timeouts match ``download.timeout``."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(config.download.timeout),
    )
