"""Asset values threaded through the transform phases.

Each phase produces the next stage type from the previous one: fields are
only ever appended, never rewritten. Values are frozen so the original
capture offsets stay stable all the way to the rewrite.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
import math
from typing import TYPE_CHECKING, ClassVar, TypeVar

if TYPE_CHECKING:
    from pathlib import Path

A = TypeVar("A", bound="CapturedAsset")


class AssetType(str, Enum):
    """Classification assigned at capture time."""

    IMAGE = "image"
    ANIMATION = "animation"
    VIDEO = "video"
    YOUTUBE = "youtube"


@dataclass(frozen=True, slots=True)
class AssetSyntax:
    """Matched text span of an asset reference in the source document."""

    #: Full matched text.
    text: str
    #: Title (alt text, caption) captured from the reference.
    title: str
    #: Source URI as written in the document.
    url: str
    #: Offset of the first matched character in the original document.
    start: int
    #: Offset one past the last matched character in the original document.
    end: int


@dataclass(frozen=True, slots=True)
class AssetSize:
    """Width and height of an asset, in pixels."""

    width: float
    height: float

    ZERO: ClassVar[AssetSize]
    NAN: ClassVar[AssetSize]

    @property
    def valid(self) -> bool:
        """Whether both dimensions are real measurements."""
        return not (math.isnan(self.width) or math.isnan(self.height))

    def to_json(self) -> dict[str, float]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_json(cls, data: object) -> AssetSize | None:
        """Restore a cached size; returns None for malformed entries."""
        if not isinstance(data, dict):
            return None
        width, height = data.get("width"), data.get("height")
        if not isinstance(width, (int, float)) or not isinstance(height, (int, float)):
            return None
        return cls(width, height)


AssetSize.ZERO = AssetSize(0, 0)
AssetSize.NAN = AssetSize(math.nan, math.nan)


@dataclass(frozen=True, slots=True)
class AssetContent:
    """Served URLs resolved for an asset before markup is built."""

    #: URL of the original (or mirrored) source; also the fallback for clients
    #: without support for the optimized format.
    src: str
    #: URL of the optimized derivative, when one exists.
    encoded: str | None = None
    #: URL of the poster image for videos, when one exists.
    poster: str | None = None


@dataclass(frozen=True, slots=True)
class CapturedAsset:
    """Asset found in a document (phase 1)."""

    syntax: AssetSyntax
    type: AssetType

    def advance(self, cls: type[A], **fields: object) -> A:
        """Return *cls* built from this asset's fields plus the new *fields*."""
        values = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        values.update(fields)
        return cls(**values)


@dataclass(frozen=True, slots=True)
class DownloadedAsset(CapturedAsset):
    """Asset with a local mirror of its source (phase 2).

    ``source_path`` is None for external links, which have no local file.
    """

    source_path: Path | None


@dataclass(frozen=True, slots=True)
class ProbedAsset(DownloadedAsset):
    """Asset with measured dimensions (phase 3)."""

    size: AssetSize


@dataclass(frozen=True, slots=True)
class EncodedAsset(ProbedAsset):
    """Asset with optimized derivatives (phase 4).

    Paths are None when encoding is disabled, failed or does not apply.
    """

    encoded_path: Path | None
    poster_path: Path | None = None


@dataclass(frozen=True, slots=True)
class ResolvedAsset(EncodedAsset):
    """Asset with resolved served URLs (phase 5, first half)."""

    content: AssetContent | None = None


@dataclass(frozen=True, slots=True)
class BuiltAsset(ResolvedAsset):
    """Asset with the markup that replaces its syntax (phase 5)."""

    html: str = ""
