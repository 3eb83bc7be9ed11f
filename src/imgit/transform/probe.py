"""Phase 3: measure width and height of downloaded files with ffprobe.

Resolution order per asset: persisted ``size`` cache → in-flight probe for
the same source → a fresh ffprobe run registered before it starts. Tool
failures never abort the build; the size degrades to ``AssetSize.NAN``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING

from imgit import tools
from imgit.asset import AssetSize, AssetType, DownloadedAsset, ProbedAsset
from imgit.cache import SIZE
from imgit.errors import ToolError

if TYPE_CHECKING:
    from imgit.context import Context

log = logging.getLogger(__name__)

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)x(\d+(?:\.\d+)?)\s*$")


async def probe(
    path: str, assets: list[DownloadedAsset], ctx: Context
) -> list[ProbedAsset]:
    """Attach measured sizes to the downloaded assets of one document."""
    del path
    return list(await asyncio.gather(*(probe_asset(a, ctx) for a in assets)))


async def probe_asset(asset: DownloadedAsset, ctx: Context) -> ProbedAsset:
    if asset.type is AssetType.YOUTUBE or asset.source_path is None:
        return asset.advance(ProbedAsset, size=AssetSize.ZERO)

    key = str(asset.source_path)
    sizes = ctx.cache.category(SIZE)

    def _cache_get(k: str) -> AssetSize | None:
        return AssetSize.from_json(sizes.get(k))

    def _cache_set(k: str, size: AssetSize) -> None:
        # Failed measurements are never cached and never replace a good entry.
        if size.valid:
            sizes[k] = size.to_json()

    async def _work() -> AssetSize:
        async with ctx.slot():
            return await probe_size(key, ctx)

    size = await ctx.probes.do_once(
        key, _work, cache_get=_cache_get, cache_set=_cache_set
    )
    return asset.advance(ProbedAsset, size=size)


async def probe_size(source: str, ctx: Context) -> AssetSize:
    """Run ffprobe on *source*; NaN sentinel on failure or unexpected output."""
    argv = [*tools.split_args(ctx.config.probe.args), source]
    try:
        result = await tools.run_tool(tools.FFPROBE, argv)
    except ToolError as e:
        ctx.log.warn("ffprobe error: %s", e)
        return AssetSize.NAN
    size = parse_size(result.stdout)
    if not size.valid:
        ctx.log.warn("Unexpected ffprobe output for %s: %r", source, result.stdout)
    return size


def parse_size(out: str) -> AssetSize:
    """Parse the first non-empty line of ffprobe output as ``<width>x<height>``."""
    for line in (out or "").splitlines():
        if not line.strip():
            continue
        m = _SIZE_RE.match(line)
        if m is None:
            break
        return AssetSize(_number(m.group(1)), _number(m.group(2)))
    return AssetSize.NAN


def _number(text: str) -> float:
    value = float(text)
    return int(value) if value.is_integer() else value
