"""Phase 4: produce optimized derivatives of the source files with ffmpeg.

Images and animations are encoded to AV1 under an AVIF container, videos to
AV1 under MP4. A kind whose arguments are None is passed through unchanged.
Encoder failures are logged and degrade to the unencoded source.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from imgit import tools
from imgit.asset import AssetType, EncodedAsset, ProbedAsset
from imgit.config import POSTER_AUTO
from imgit.errors import ToolError

if TYPE_CHECKING:
    from pathlib import Path

    from imgit.context import Context

log = logging.getLogger(__name__)

_EXTENSIONS = {
    AssetType.IMAGE: "avif",
    AssetType.ANIMATION: "avif",
    AssetType.VIDEO: "mp4",
}
POSTER_SUFFIX = "-poster"
PARTIAL_SUFFIX = ".part"


async def encode(
    path: str, assets: list[ProbedAsset], ctx: Context
) -> list[EncodedAsset]:
    """Attach encoded derivative paths to the probed assets of one document."""
    del path
    return list(await asyncio.gather(*(encode_asset(a, ctx) for a in assets)))


async def encode_asset(asset: ProbedAsset, ctx: Context) -> EncodedAsset:
    source = asset.source_path
    if source is None or asset.type not in _EXTENSIONS:
        return asset.advance(EncodedAsset, encoded_path=None)

    args = encode_args(asset.type, ctx)
    encoded = None
    if args is not None:
        target = encoded_path(source, asset.type, ctx)
        argv = [*tools.split_args(args), *_scale(asset, ctx)]
        encoded = await _encode_once(source, target, argv, ctx)

    poster = None
    if asset.type is AssetType.VIDEO and ctx.config.poster == POSTER_AUTO:
        image_args = ctx.config.encode.image
        target = poster_path(source, ctx, encoded=image_args is not None)
        argv = [*tools.split_args(image_args), "-frames:v", "1", *_scale(asset, ctx)]
        poster = await _encode_once(source, target, argv, ctx)

    return asset.advance(EncodedAsset, encoded_path=encoded, poster_path=poster)


def encode_args(kind: AssetType, ctx: Context) -> str | None:
    """Configured ffmpeg arguments for *kind*; None when encoding is disabled."""
    opts = ctx.config.encode
    if kind is AssetType.IMAGE:
        return opts.image
    if kind is AssetType.ANIMATION:
        return opts.animation
    if kind is AssetType.VIDEO:
        return opts.video
    return None


def encoded_path(source: Path, kind: AssetType, ctx: Context) -> Path:
    """``<dir>/<stem><suffix>.<ext>`` next to the source file."""
    return source.with_name(f"{source.stem}{ctx.config.suffix}.{_EXTENSIONS[kind]}")


def poster_path(source: Path, ctx: Context, *, encoded: bool = True) -> Path:
    ext = "avif" if encoded else "png"
    return source.with_name(f"{source.stem}{ctx.config.suffix}{POSTER_SUFFIX}.{ext}")


def _scale(asset: ProbedAsset, ctx: Context) -> list[str]:
    limit = ctx.config.width
    if limit is None or not asset.size.valid or asset.size.width <= limit:
        return []
    # -2 keeps the aspect ratio with an even height, as AV1 encoders require.
    return ["-vf", f"scale={limit}:-2"]


async def _encode_once(
    source: Path, target: Path, args: list[str], ctx: Context
) -> Path | None:
    async def _work() -> Path | None:
        if target.exists():
            return target
        async with ctx.slot():
            return await run_encoder(source, target, args, ctx)

    return await ctx.encodes.do_once(target, _work)


async def run_encoder(
    source: Path, target: Path, args: list[str], ctx: Context
) -> Path | None:
    """Run ffmpeg; returns *target*, or None when the encoder failed.

    ffmpeg writes to :func:`partial_output`, renamed to *target* only after
    a successful exit; the partial file never outlives the call.
    """
    ctx.log.info("Encoding %s to %s", source, target)
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = partial_output(target)
    argv = ["-y", "-i", str(source), *args, str(partial)]
    try:
        await tools.run_tool(tools.FFMPEG, argv)
    except ToolError as e:
        ctx.log.warn("Failed to encode %s; using the source as is. (error: %s)", source, e)
        return None
    else:
        if not partial.exists():
            ctx.log.warn("ffmpeg reported success but produced no %s", partial)
            return None
        partial.replace(target)
        return target
    finally:
        with contextlib.suppress(FileNotFoundError):
            partial.unlink()


def partial_output(target: Path) -> Path:
    # ffmpeg picks the muxer from the extension, so it stays last.
    return target.with_name(f"{target.stem}{PARTIAL_SUFFIX}{target.suffix}")
