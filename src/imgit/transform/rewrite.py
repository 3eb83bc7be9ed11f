"""Phase 6: splice built markup into the original document."""

from __future__ import annotations

from typing import TYPE_CHECKING

from imgit.errors import InternalError

if TYPE_CHECKING:
    from imgit.asset import BuiltAsset
    from imgit.context import Context


async def rewrite(
    path: str, content: str, assets: list[BuiltAsset], ctx: Context
) -> str:
    """Replace each asset's span in *content* with its markup.

    Spans refer to *content* as originally captured, so the document is
    rebuilt in a single left-to-right pass rather than by successive
    replacements. Text outside the spans is copied unchanged.
    """
    del path, ctx
    parts: list[str] = []
    cursor = 0
    for asset in sorted(assets, key=lambda a: a.syntax.start):
        start, end = asset.syntax.start, asset.syntax.end
        if start < cursor or end < start or end > len(content):
            raise InternalError(
                f"Asset span {start}:{end} for {asset.syntax.url!r} overlaps or "
                f"falls outside the document (cursor at {cursor})."
            )
        parts.append(content[cursor:start])
        parts.append(asset.html)
        cursor = end
    parts.append(content[cursor:])
    return "".join(parts)
