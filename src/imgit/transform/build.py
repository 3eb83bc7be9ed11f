"""Phase 5: resolve served URLs and build the replacement markup.

Plugin resolvers and builders run first, in registration order, and the
first ``Handled`` outcome wins. Assets no plugin handles go through the
default path: served URLs derived from the local files, then the per-type
markup (or the ``build.<type>`` override from the configuration).
"""

from __future__ import annotations

import asyncio
import dataclasses
from html import escape
import logging
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlsplit

from imgit.asset import (
    AssetContent,
    AssetSize,
    AssetType,
    BuiltAsset,
    EncodedAsset,
    ResolvedAsset,
)
from imgit.config import POSTER_AUTO
from imgit.plugins.base import first_handled

if TYPE_CHECKING:
    from collections.abc import Callable

    from imgit.config import Config
    from imgit.context import Context

log = logging.getLogger(__name__)

#: MIME type advertised for AV1 video derivatives.
AV1_VIDEO_TYPE = "video/mp4; codecs=av01.0.05M.08"
YOUTUBE_EMBED = "https://www.youtube-nocookie.com/embed/{id}"


async def build(path: str, assets: list[EncodedAsset], ctx: Context) -> list[BuiltAsset]:
    """Build markup for the encoded assets of one document."""
    del path
    return list(await asyncio.gather(*(build_asset(a, ctx) for a in assets)))


async def build_asset(asset: EncodedAsset, ctx: Context) -> BuiltAsset:
    pending = asset.advance(ResolvedAsset, content=None)
    handled = await first_handled(ctx.resolvers, pending, ctx)
    content = handled.value if handled is not None else resolve_default(pending, ctx)
    resolved = dataclasses.replace(pending, content=content)

    unbuilt = resolved.advance(BuiltAsset, html="")
    built = await first_handled(ctx.builders, unbuilt, ctx)
    html = built.value if built is not None else await build_default(unbuilt, ctx)
    return dataclasses.replace(unbuilt, html=html)


# --- Resolution ---


def resolve_default(asset: ResolvedAsset, ctx: Context) -> AssetContent:
    """Map local source, derivative and poster files to their served URLs."""
    config = ctx.config
    if asset.type is AssetType.YOUTUBE or asset.source_path is None:
        return AssetContent(src=asset.syntax.url)

    src = served_url(asset.source_path, config) or asset.syntax.url
    encoded = served_url(asset.encoded_path, config) if asset.encoded_path else None
    poster = None
    if asset.type is AssetType.VIDEO:
        if asset.poster_path is not None:
            poster = served_url(asset.poster_path, config)
        elif config.poster not in (None, POSTER_AUTO):
            poster = config.poster
    return AssetContent(src=src, encoded=encoded, poster=poster)


def served_url(path: Path, config: Config) -> str | None:
    """URL under ``serve`` for a file inside ``local``; None when outside it."""
    try:
        rel = Path(path).resolve().relative_to(config.local.resolve())
    except ValueError:
        log.debug("%s is outside %s; it has no served URL", path, config.local)
        return None
    return f"{config.serve.rstrip('/')}/{rel.as_posix()}"


# --- Markup ---


async def build_default(
    asset: BuiltAsset, ctx: Context, *, kind: AssetType | None = None
) -> str:
    """Build markup with the configured override or the default template.

    ``kind`` lets plugins reuse another type's template, e.g. build a poster
    for an external link as if it were a plain image.
    """
    kind = kind or asset.type
    override = getattr(ctx.config.build, kind.value)
    if override is not None:
        return await override(asset, ctx)
    return DEFAULT_BUILDERS[kind](asset, ctx)


def build_picture(asset: BuiltAsset, ctx: Context) -> str:
    """``<picture>`` with an AVIF source and a fallback ``<img>`` to the original."""
    content = asset.content or AssetContent(src=asset.syntax.url)
    source = (
        f'<source srcset="{escape(content.encoded)}" type="image/avif"/>'
        if content.encoded
        else ""
    )
    img = (
        f'<img src="{escape(content.src)}" alt="{escape(asset.syntax.title)}"'
        f'{size_attributes(asset.size, ctx.config.width)} loading="lazy" decoding="async"/>'
    )
    return f'<picture class="imgit-{asset.type.value}">{source}{img}</picture>'


def build_video(asset: BuiltAsset, ctx: Context) -> str:
    """Looping muted ``<video>`` with the AV1 derivative and the original as fallback."""
    content = asset.content or AssetContent(src=asset.syntax.url)
    poster = f' poster="{escape(content.poster)}"' if content.poster else ""
    title = f' title="{escape(asset.syntax.title)}"' if asset.syntax.title else ""
    sources = ""
    if content.encoded:
        sources += f'<source src="{escape(content.encoded)}" type="{AV1_VIDEO_TYPE}"/>'
    sources += f'<source src="{escape(content.src)}" type="video/mp4"/>'
    return (
        f'<video class="imgit-video"{title}{poster}'
        f"{size_attributes(asset.size, ctx.config.width)}"
        f" autoplay loop muted playsinline>{sources}</video>"
    )


def build_youtube(asset: BuiltAsset, ctx: Context) -> str:
    """Plain embed used when no plugin handles YouTube links."""
    del ctx
    src = YOUTUBE_EMBED.format(id=escape(youtube_id(asset.syntax.url)))
    return (
        f'<iframe class="imgit-youtube" src="{src}" title="{escape(asset.syntax.title)}"'
        ' loading="lazy" allowfullscreen></iframe>'
    )


DEFAULT_BUILDERS: dict[AssetType, Callable[[BuiltAsset, Context], str]] = {
    AssetType.IMAGE: build_picture,
    AssetType.ANIMATION: build_picture,
    AssetType.VIDEO: build_video,
    AssetType.YOUTUBE: build_youtube,
}


def size_attributes(size: AssetSize, limit: int | None) -> str:
    """``width``/``height`` attributes, clamped to *limit* keeping the ratio.

    Omitted for unknown (NaN) or empty sizes.
    """
    if not size.valid or size.width <= 0 or size.height <= 0:
        return ""
    width, height = size.width, size.height
    if limit is not None and width > limit:
        height = height * limit / width
        width = limit
    return f' width="{round(width)}" height="{round(height)}"'


def youtube_id(url: str) -> str:
    """Video ID from a ``watch?v=<id>`` link; empty when absent."""
    values = parse_qs(urlsplit(url).query).get("v")
    return values[0] if values else ""
