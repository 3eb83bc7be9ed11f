"""Test helpers: asset builders and response factories.

Keep this file tiny: assets at a given stage are built here so tests can
start from any phase without running the earlier ones.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from imgit.asset import (
    AssetSize,
    AssetSyntax,
    AssetType,
    CapturedAsset,
    DownloadedAsset,
    EncodedAsset,
    ProbedAsset,
)


def captured(
    url: str,
    *,
    title: str = "",
    type: AssetType = AssetType.IMAGE,
    start: int = 0,
) -> CapturedAsset:
    text = f"![{title}]({url})"
    syntax = AssetSyntax(text=text, title=title, url=url, start=start, end=start + len(text))
    return CapturedAsset(syntax=syntax, type=type)


def downloaded(url: str, source: Path | None, **kwargs: Any) -> DownloadedAsset:
    return captured(url, **kwargs).advance(DownloadedAsset, source_path=source)


def probed(
    url: str, source: Path | None, size: AssetSize | None = None, **kwargs: Any
) -> ProbedAsset:
    return downloaded(url, source, **kwargs).advance(
        ProbedAsset, size=size or AssetSize(640, 480)
    )


def encoded(
    url: str,
    source: Path | None,
    encoded_path: Path | None = None,
    *,
    poster_path: Path | None = None,
    size: AssetSize | None = None,
    **kwargs: Any,
) -> EncodedAsset:
    return probed(url, source, size, **kwargs).advance(
        EncodedAsset, encoded_path=encoded_path, poster_path=poster_path
    )


def ok(content: bytes = b"bytes"):
    return lambda _request: httpx.Response(200, content=content)


def status(code: int, headers: dict[str, str] | None = None):
    return lambda _request: httpx.Response(code, headers=headers)


def fail(exc_type: type[httpx.TransportError] = httpx.ConnectError):
    def _raise(request: httpx.Request) -> httpx.Response:
        raise exc_type("connection refused", request=request)

    return _raise
