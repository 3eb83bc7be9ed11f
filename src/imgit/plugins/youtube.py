"""Embed YouTube videos as a lightweight poster with a lazily loaded player.

Usage:
    config = resolve_config({"plugins": [youtube()]})

A ``![title](https://www.youtube.com/watch?v=<id>)`` reference is rendered as
the video's best available thumbnail; the ``<iframe>`` player is only
activated client-side (``data-imgit-src``) when the poster is clicked.
"""

from __future__ import annotations

import dataclasses
from html import escape
import logging
from typing import TYPE_CHECKING

import httpx

from imgit.asset import AssetContent, AssetType
from imgit.plugins.base import NOT_HANDLED, Handled, Plugin
from imgit.transform.build import YOUTUBE_EMBED, build_default, youtube_id

if TYPE_CHECKING:
    from imgit.asset import BuiltAsset, ResolvedAsset
    from imgit.context import Context
    from imgit.plugins.base import Outcome

log = logging.getLogger(__name__)

#: Cache category mapping video IDs to resolved thumbnail URLs.
CACHE = "youtube"
#: Thumbnail variants in order of preference; every video has at least "0".
THUMBNAILS = ("maxresdefault", "mqdefault", "0")
THUMBNAIL_URL = "https://i.ytimg.com/vi_webp/{id}/{variant}.webp"


def youtube(*, title: bool = True, banner: bool = True) -> Plugin:
    """Create the YouTube plugin.

    Args:
        title: Show the captured title above the poster.
        banner: Show the "Watch on" banner linking to YouTube.
    """

    async def resolve(asset: ResolvedAsset, ctx: Context) -> Outcome[AssetContent]:
        if not is_youtube(asset):
            return NOT_HANDLED
        thumbnail = await resolve_thumbnail(youtube_id(asset.syntax.url), ctx)
        return Handled(AssetContent(src=thumbnail))

    async def build(asset: BuiltAsset, ctx: Context) -> Outcome[str]:
        if not is_youtube(asset):
            return NOT_HANDLED
        alt = escape(asset.syntax.title)
        source = YOUTUBE_EMBED.format(id=escape(youtube_id(asset.syntax.url)))
        title_html = f'<div class="imgit-youtube-title">{alt}</div>' if title else ""
        banner_html = (
            '<button class="imgit-youtube-banner" title="Watch video on YouTube">'
            "Watch on</button>"
            if banner
            else ""
        )
        poster = await build_poster(asset, ctx)
        return Handled(
            f"""
<div class="imgit-youtube" data-imgit-container>{title_html}{banner_html}
    <div class="imgit-youtube-poster" title="Play YouTube video">
        <button class="imgit-youtube-play" title="Play YouTube video"></button>
        {poster}
    </div>
    <div class="imgit-youtube-player" hidden>
        <iframe title="{alt}" data-imgit-src="{source}" allowfullscreen></iframe>
    </div>
</div>"""
        )

    return Plugin(name="youtube", resolvers=(resolve,), builders=(build,), cache=(CACHE,))


def is_youtube(asset: ResolvedAsset) -> bool:
    return asset.type is AssetType.YOUTUBE


async def build_poster(asset: BuiltAsset, ctx: Context) -> str:
    """Render the thumbnail through the default image template."""
    poster = dataclasses.replace(asset, type=AssetType.IMAGE)
    return await build_default(poster, ctx, kind=AssetType.IMAGE)


async def resolve_thumbnail(video_id: str, ctx: Context) -> str:
    """URL of the best available thumbnail, cached per video ID.

    When every variant fails a warning is logged and the last candidate is
    returned without caching, so the next run tries again.
    """
    thumbs = ctx.cache.category(CACHE)
    cached = thumbs.get(video_id)
    if isinstance(cached, str):
        return cached

    url = ""
    for variant in THUMBNAILS:
        url = THUMBNAIL_URL.format(id=video_id, variant=variant)
        try:
            response = await ctx.client.head(url)
        except httpx.HTTPError as e:
            log.debug("Thumbnail %s unavailable: %s", url, e)
            continue
        if response.is_success:
            resolved = str(response.url)
            thumbs[video_id] = resolved
            return resolved
        log.debug("Thumbnail %s answered %d", url, response.status_code)

    ctx.log.warn('Failed to resolve thumbnail for "%s" YouTube video.', video_id)
    return url
