"""Phase 1: find asset references in document text."""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

from imgit.asset import AssetSyntax, AssetType, CapturedAsset

if TYPE_CHECKING:
    from imgit.config import Config
    from imgit.context import Context


async def capture(path: str, content: str, ctx: Context) -> list[CapturedAsset]:
    """Return assets matched by ``config.regex`` in document order.

    Offsets refer to *content* as given and are never adjusted later.
    """
    del path
    config = ctx.config
    assets: list[CapturedAsset] = []
    for match in config.regex.finditer(content):
        url = (match.group("uri") or "").strip()
        syntax = AssetSyntax(
            text=match.group(0),
            title=match.group("title") or "",
            url=url,
            start=match.start(),
            end=match.end(),
        )
        assets.append(CapturedAsset(syntax=syntax, type=classify(url, config)))
    return assets


def classify(url: str, config: Config) -> AssetType:
    """Classify *url* by the external-link pattern, then by file extension.

    Unknown extensions fall back to ``IMAGE`` so every asset gets markup.
    """
    if config.youtube and config.youtube_pattern.search(url):
        return AssetType.YOUTUBE
    ext = url_extension(url)
    if ext in config.image:
        return AssetType.IMAGE
    if ext in config.animation:
        return AssetType.ANIMATION
    if ext in config.video:
        return AssetType.VIDEO
    return AssetType.IMAGE


def url_extension(url: str) -> str:
    """Lowercase extension (without dot) of the URL path; query and fragment ignored."""
    name = posixpath.basename(unquote(urlsplit(url).path))
    _, ext = posixpath.splitext(name)
    return ext[1:].lower()
