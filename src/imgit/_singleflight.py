"""Keyed single-flight coordination for one pipeline run.

A download destination, a probed source or an encoded output is worked on by
exactly one coroutine at a time; concurrent callers for the same key wait on
the creator's Future and share its result or exception.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

K = TypeVar("K")
T = TypeVar("T")


def _silence(fut: asyncio.Future[Any]) -> None:
    # Mark the exception retrieved when no waiter showed up.
    if not fut.cancelled():
        fut.exception()


def _no_cache(_key: Any) -> None:
    return None


def _discard(_key: Any, _value: Any) -> None:
    return None


class SingleFlight(Generic[K, T]):
    """Registry of in-flight work keyed by ``K``.

    ``do_once(key, work)`` guarantees at most one concurrent *work* per key.
    Failures are shared with the waiters but never remembered: the next call
    after a failure runs *work* again.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._inflight: dict[K, asyncio.Future[T]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def do_once(
        self,
        key: K,
        work: Callable[[], Awaitable[T]],
        *,
        cache_get: Callable[[K], T | None] = _no_cache,
        cache_set: Callable[[K, T], None] = _discard,
    ) -> T:
        """Return the cached value for *key* or run *work* once for it.

        ``cache_get`` is consulted before and under the lock. ``cache_set``
        runs under the lock after *work* succeeds and decides whether the
        value is worth keeping.
        """
        hit = cache_get(key)
        if hit is not None:
            return hit

        async with self._lock:
            hit = cache_get(key)
            if hit is not None:
                return hit
            pending = self._inflight.get(key)
            if pending is None:
                owned = asyncio.get_running_loop().create_future()
                owned.add_done_callback(_silence)
                self._inflight[key] = owned

        if pending is not None:
            return await pending
        return await self._run(key, owned, work, cache_set)

    async def _run(
        self,
        key: K,
        fut: asyncio.Future[T],
        work: Callable[[], Awaitable[T]],
        cache_set: Callable[[K, T], None],
    ) -> T:
        try:
            value = await work()
            async with self._lock:
                cache_set(key, value)
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            fut.set_exception(e)
            raise
        else:
            fut.set_result(value)
            return value
        finally:
            async with self._lock:
                self._inflight.pop(key, None)
