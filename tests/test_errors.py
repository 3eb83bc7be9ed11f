"""Exception hierarchy and hint behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

from imgit.errors import (
    ConfigurationError,
    DownloadError,
    ImgitError,
    InternalError,
    PluginError,
    RateLimitError,
    ToolError,
    _walk_exception_chain,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "cls",
    [ConfigurationError, DownloadError, RateLimitError, ToolError, PluginError, InternalError],
)
def test_all_errors_share_the_imgit_base(cls: type[ImgitError]) -> None:
    err = cls("boom", hint="try again")
    assert isinstance(err, ImgitError)
    assert str(err) == "boom"
    assert err.hint == "try again"


def test_rate_limit_error_is_a_download_error() -> None:
    err = RateLimitError("throttled", url="https://x.test/a.png", retry_after="soon")

    assert isinstance(err, DownloadError)
    assert err.status_code == 429
    assert err.retry_after == "soon"
    assert err.url == "https://x.test/a.png"


def test_download_error_carries_url_path_and_attempts() -> None:
    err = DownloadError("failed", url="u", path=Path("/tmp/a.png"), attempts=4)

    assert (err.url, err.path, err.attempts) == ("u", Path("/tmp/a.png"), 4)
    assert err.hint is None


def test_tool_error_keeps_process_details() -> None:
    err = ToolError("ffmpeg failed", program="ffmpeg", returncode=1, stderr="bad codec")

    assert err.program == "ffmpeg"
    assert err.returncode == 1
    assert err.stderr == "bad codec"


def test_walk_exception_chain_follows_causes_without_looping() -> None:
    root = ValueError("root")
    middle = RuntimeError("middle")
    top = DownloadError("top")
    middle.__cause__ = root
    top.__cause__ = middle
    root.__context__ = top  # cycle

    chain = list(_walk_exception_chain(top))

    assert chain[0] is top
    assert {id(e) for e in chain} == {id(top), id(middle), id(root)}
