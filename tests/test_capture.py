"""Capture phase: asset syntax discovery and classification."""

from __future__ import annotations

import pytest

from imgit.asset import AssetType
from imgit.config import Config
from imgit.transform.capture import capture, classify, url_extension

pytestmark = pytest.mark.unit

DOC = """# Title

Intro ![Cat](/assets/cat.png) text.
![Loop](https://cdn.test/loop.GIF?v=2)
![Clip](/assets/clip.mp4)
![Talk](https://www.youtube.com/watch?v=arbuYnJoLtU)
![](/assets/unknown.bin)
"""


@pytest.mark.asyncio
async def test_capture_finds_assets_in_document_order(make_ctx) -> None:
    assets = await capture("doc.md", DOC, make_ctx())

    assert [a.syntax.url for a in assets] == [
        "/assets/cat.png",
        "https://cdn.test/loop.GIF?v=2",
        "/assets/clip.mp4",
        "https://www.youtube.com/watch?v=arbuYnJoLtU",
        "/assets/unknown.bin",
    ]
    assert [a.type for a in assets] == [
        AssetType.IMAGE,
        AssetType.ANIMATION,
        AssetType.VIDEO,
        AssetType.YOUTUBE,
        AssetType.IMAGE,
    ]


@pytest.mark.asyncio
async def test_capture_records_original_offsets_and_title(make_ctx) -> None:
    (first, *_) = await capture("doc.md", DOC, make_ctx())

    assert first.syntax.title == "Cat"
    assert DOC[first.syntax.start : first.syntax.end] == first.syntax.text
    assert first.syntax.text == "![Cat](/assets/cat.png)"


@pytest.mark.asyncio
async def test_document_without_assets_captures_nothing(make_ctx) -> None:
    assert await capture("doc.md", "plain *markdown* only", make_ctx()) == []


@pytest.mark.asyncio
async def test_custom_regex_is_honored(make_ctx) -> None:
    ctx = make_ctx(regex=r"\{\{img (?P<uri>\S+) (?P<title>[^}]*)\}\}")

    (asset,) = await capture("doc.md", "see {{img /assets/a.jpg A caption}}", ctx)

    assert asset.syntax.url == "/assets/a.jpg"
    assert asset.syntax.title == "A caption"


def test_youtube_links_are_plain_assets_when_disabled() -> None:
    url = "https://www.youtube.com/watch?v=abc"

    assert classify(url, Config()) is AssetType.YOUTUBE
    assert classify(url, Config(youtube=False)) is AssetType.IMAGE


def test_configured_extensions_drive_classification() -> None:
    cfg = Config(video=("mp4", "webm"), animation=("gif", "webp"), image=("png",))

    assert classify("/a/b.webm", cfg) is AssetType.VIDEO
    assert classify("/a/b.webp", cfg) is AssetType.ANIMATION


@pytest.mark.parametrize(
    ("url", "ext"),
    [
        ("/assets/a.PNG", "png"),
        ("https://x.test/a.jpg?w=1#frag", "jpg"),
        ("https://x.test/dir.d/file", ""),
        ("/assets/a%20b.gif", "gif"),
    ],
)
def test_url_extension(url: str, ext: str) -> None:
    assert url_extension(url) == ext
