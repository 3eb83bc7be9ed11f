"""Download phase: dedup, retries, rate limiting and local mirroring."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from imgit.asset import AssetType
from imgit.errors import DownloadError, RateLimitError
from imgit.transform.download import (
    build_local_root,
    download,
    file_name,
    partial_path,
    resolve_destination,
)
from tests.helpers import captured, fail, ok, status

pytestmark = pytest.mark.unit

URL = "https://cdn.test/img/cat.png"


@pytest.mark.asyncio
async def test_remote_asset_is_mirrored_under_remote_dir(make_ctx, transport, local_root) -> None:
    transport.routes[URL] = ok(b"png-bytes")
    ctx = make_ctx()

    (asset,) = await download("doc.md", [captured(URL)], ctx)

    assert asset.source_path == (local_root / "remote" / "cat.png").resolve()
    assert asset.source_path.read_bytes() == b"png-bytes"
    assert not partial_path(asset.source_path).exists()


@pytest.mark.asyncio
async def test_same_destination_is_fetched_once(make_ctx, transport) -> None:
    transport.routes[URL] = ok()
    ctx = make_ctx()
    assets = [captured(URL, title="a"), captured(URL, title="b", start=50)]

    first, second = await download("doc.md", assets, ctx)

    assert transport.count(URL) == 1
    assert first.source_path == second.source_path


@pytest.mark.asyncio
async def test_existing_file_is_reused_without_fetching(make_ctx, transport, local_root) -> None:
    target = local_root / "remote" / "cat.png"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"cached")

    (asset,) = await download("doc.md", [captured(URL)], make_ctx())

    assert transport.requests == []
    assert asset.source_path.read_bytes() == b"cached"


@pytest.mark.asyncio
async def test_rate_limit_waits_retry_after_plus_one_without_spending_retries(
    make_ctx, transport, sleep
) -> None:
    transport.routes[URL] = [status(429, {"Retry-After": "5"}), ok(b"late")]
    ctx = make_ctx()

    (asset,) = await download("doc.md", [captured(URL)], ctx)

    assert transport.count(URL) == 2
    assert sleep.delays == [6.0]
    assert ctx.retries.get(asset.source_path) == 0
    assert asset.source_path.read_bytes() == b"late"


@pytest.mark.asyncio
async def test_rate_limit_without_retry_after_is_fatal(make_ctx, transport, sleep) -> None:
    transport.routes[URL] = status(429)

    with pytest.raises(RateLimitError) as exc:
        await download("doc.md", [captured(URL)], make_ctx())

    assert exc.value.url == URL
    assert transport.count(URL) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_transport_failures_retry_then_give_up(
    make_ctx, make_config, transport, sleep, local_root
) -> None:
    transport.routes[URL] = fail()
    ctx = make_ctx(make_config(download={"retries": 2, "delay": 0}))

    with pytest.raises(DownloadError) as exc:
        await download("doc.md", [captured(URL)], ctx)

    dest = (local_root / "remote" / "cat.png").resolve()
    assert transport.count(URL) == 3
    assert exc.value.attempts == 3
    assert exc.value.path == dest
    assert isinstance(exc.value.__cause__, httpx.ConnectError)
    assert len(sleep.delays) == 2
    assert not dest.exists()
    assert not partial_path(dest).exists()


@pytest.mark.asyncio
async def test_error_status_is_retried_like_a_transport_failure(
    make_ctx, make_config, transport
) -> None:
    transport.routes[URL] = [status(503), ok(b"ok")]
    ctx = make_ctx(make_config(download={"delay": 0}))

    (asset,) = await download("doc.md", [captured(URL)], ctx)

    assert transport.count(URL) == 2
    assert ctx.retries.get(asset.source_path) == 1


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_failure(make_ctx, make_config, transport) -> None:
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200)

    client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
    ctx = make_ctx(make_config(download={"retries": 0, "timeout": 0.01}))
    ctx.client = client

    with pytest.raises(DownloadError) as exc:
        await download("doc.md", [captured(URL)], ctx)

    assert isinstance(exc.value.__cause__, TimeoutError)


@pytest.mark.asyncio
async def test_missing_local_asset_fails_without_network(make_ctx, transport) -> None:
    with pytest.raises(DownloadError, match="not found") as exc:
        await download("doc.md", [captured("/assets/missing.png")], make_ctx())

    assert exc.value.hint is not None
    assert transport.requests == []


@pytest.mark.asyncio
async def test_local_asset_under_serve_prefix_maps_into_local(make_ctx, local_root) -> None:
    source = local_root / "img" / "a.png"
    source.parent.mkdir()
    source.write_bytes(b"local")

    (asset,) = await download("doc.md", [captured("/assets/img/a.png")], make_ctx())

    assert asset.source_path == source.resolve()


@pytest.mark.asyncio
async def test_youtube_links_skip_network_io(make_ctx, transport) -> None:
    link = captured("https://www.youtube.com/watch?v=abc", type=AssetType.YOUTUBE)

    (asset,) = await download("doc.md", [link], make_ctx())

    assert asset.source_path is None
    assert transport.requests == []


def test_custom_local_root_decides_the_directory(make_config, tmp_path: Path) -> None:
    cfg = make_config(download={"local_root": lambda asset, config: tmp_path / "mirror"})

    assert resolve_destination(captured(URL), cfg) == (tmp_path / "mirror" / "cat.png").resolve()


def test_build_local_root_strips_serve_prefix(make_config, local_root) -> None:
    cfg = make_config()

    assert build_local_root(captured("/assets/a/b/c.png"), cfg) == local_root / "a" / "b"
    assert build_local_root(captured("/assets/c.png"), cfg) == local_root
    assert build_local_root(captured("/assetsx/c.png"), cfg) == local_root / "remote"


def test_file_name_falls_back_to_a_hash() -> None:
    assert file_name("https://x.test/a%20b.png?x=1") == "a b.png"
    name = file_name("https://x.test/")
    assert len(name) == 16
    assert name == file_name("https://x.test/")
