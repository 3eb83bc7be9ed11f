"""Phase 2: mirror remote asset files to the local asset directory.

Behavior:
  - External links (YouTube) have no file and skip network I/O entirely.
  - Destinations are single-flighted: at most one fetch per path per run, and
    a file already on disk is reused without fetching.
  - Bytes stream into ``<name>.part`` and are renamed once complete.
  - Transport failures are retried with jittered backoff until the per-path
    failure count exceeds ``download.retries``; then the partial file is
    removed and ``DownloadError`` propagates.
  - HTTP 429 never consumes a retry: the call waits ``Retry-After + 1``
    seconds and repeats the request. A missing or non-numeric header is a
    ``RateLimitError``.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
from pathlib import Path
import posixpath
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

from imgit.asset import AssetType, CapturedAsset, DownloadedAsset
from imgit.errors import DownloadError, RateLimitError
from imgit.retry import (
    RATE_LIMIT_STATUS,
    compute_backoff_delay,
    is_transport_failure,
    parse_retry_after,
)

if TYPE_CHECKING:
    from imgit.config import Config
    from imgit.context import Context

log = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".part"


async def download(
    path: str, assets: list[CapturedAsset], ctx: Context
) -> list[DownloadedAsset]:
    """Fetch files for the captured assets of one document."""
    del path
    tasks = [
        asyncio.create_task(download_asset(a, ctx), name=f"download:{a.syntax.url}")
        for a in assets
    ]
    # Collect every outcome before raising so no task is left with an
    # unobserved exception.
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for item in results:
        if isinstance(item, BaseException):
            raise item
    return list(results)  # type: ignore[arg-type]


async def download_asset(asset: CapturedAsset, ctx: Context) -> DownloadedAsset:
    """Ensure a local copy of *asset* exists and return it with its path."""
    if asset.type is AssetType.YOUTUBE:
        return asset.advance(DownloadedAsset, source_path=None)

    url = asset.syntax.url
    dest = resolve_destination(asset, ctx.config)

    async def _work() -> Path:
        if dest.exists():
            return dest
        if not is_remote(url):
            raise DownloadError(
                f"Local asset {url} not found at {dest}",
                hint="Check the asset path or the 'local'/'serve' configuration.",
                url=url,
                path=dest,
            )
        async with ctx.slot():
            await fetch_with_retries(url, dest, ctx)
        return dest

    await ctx.downloads.do_once(dest, _work)
    return asset.advance(DownloadedAsset, source_path=dest)


def resolve_destination(asset: CapturedAsset, config: Config) -> Path:
    """Return the absolute local path mirroring *asset*'s source."""
    custom = config.download.local_root
    root = custom(asset, config) if custom is not None else build_local_root(asset, config)
    return (Path(root) / file_name(asset.syntax.url)).resolve()


def build_local_root(asset: CapturedAsset, config: Config) -> Path:
    """Map a served URL to its directory under ``local``.

    URLs outside the ``serve`` prefix land in the ``remote`` subdirectory.
    """
    url = asset.syntax.url
    rest = _strip_serve_prefix(url, config.serve)
    if rest is None:
        return config.local / config.remote
    directory = posixpath.dirname(unquote(urlsplit(rest).path)).strip("/")
    return config.local / directory if directory else config.local


def _strip_serve_prefix(url: str, serve: str) -> str | None:
    if serve in ("", "/"):
        return url if url.startswith("/") and not url.startswith("//") else None
    if url == serve or url.startswith(serve + "/"):
        return url[len(serve) :]
    return None


def file_name(url: str) -> str:
    """Base name of the URL path; a short hash when the path has none."""
    name = posixpath.basename(unquote(urlsplit(url).path))
    if name and name not in (".", ".."):
        return name
    return hashlib.sha256(url.encode()).hexdigest()[:16]


def is_remote(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def partial_path(dest: Path) -> Path:
    return dest.with_name(dest.name + PARTIAL_SUFFIX)


async def fetch_with_retries(url: str, dest: Path, ctx: Context) -> None:
    """Download *url* to *dest*, retrying transport failures."""
    opts = ctx.config.download
    partial = partial_path(dest)
    ctx.log.info("Downloading %s to %s", url, dest)
    while True:
        try:
            await fetch_attempt(url, partial, ctx)
        except asyncio.CancelledError:
            _discard(partial)
            raise
        except Exception as exc:
            if not is_transport_failure(exc):
                _discard(partial)
                raise
            count = ctx.retries.increment(dest)
            if count > opts.retries:
                _discard(partial)
                raise DownloadError(
                    f"Failed to download {url} after {count} attempt(s): {_describe(exc)}",
                    hint="Check connectivity or raise download.retries/download.timeout.",
                    url=url,
                    path=dest,
                    attempts=count,
                ) from exc
            ctx.log.warn(
                "Failed to download %s, retrying (%d/%d). (error: %s)",
                url,
                count,
                opts.retries,
                _describe(exc),
            )
            await ctx.sleep(compute_backoff_delay(opts.delay))
            continue
        partial.replace(dest)
        return


async def fetch_attempt(url: str, partial: Path, ctx: Context) -> None:
    """One fetch attempt, repeated as long as the host answers 429.

    Only the request itself is bounded by ``download.timeout``; rate-limit
    waits are not.
    """
    timeout = ctx.config.download.timeout
    while True:
        async with asyncio.timeout(timeout):
            retry_after = await _stream_to(url, partial, ctx)
        if retry_after is None:
            return
        ctx.log.warn(
            "Too many fetch requests for %s; the host asked to wait %s seconds.",
            url,
            retry_after,
        )
        await ctx.sleep(retry_after + 1)


async def _stream_to(url: str, partial: Path, ctx: Context) -> float | None:
    """Stream the response body to *partial*; returns the 429 wait if throttled."""
    async with ctx.client.stream("GET", url) as response:
        if response.status_code == RATE_LIMIT_STATUS:
            raw = response.headers.get("Retry-After")
            delay = parse_retry_after(raw)
            if delay is None:
                raise RateLimitError(
                    f"{url}: 429 without a valid Retry-After header ({raw!r}).",
                    hint="The host did not say when to retry; try the build again later.",
                    url=url,
                    retry_after=raw,
                )
            return delay
        response.raise_for_status()
        partial.parent.mkdir(parents=True, exist_ok=True)
        with partial.open("wb") as f:
            async for chunk in response.aiter_bytes():
                f.write(chunk)
    log.debug("Fetched %s into %s", url, partial)
    return None


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def _discard(partial: Path) -> None:
    with contextlib.suppress(FileNotFoundError):
        partial.unlink()
