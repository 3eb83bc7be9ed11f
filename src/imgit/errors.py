"""Exception hierarchy for imgit."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class ImgitError(Exception):
    """Base exception for all imgit errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ImgitError):
    """Configuration validation or resolution failed."""


class InternalError(ImgitError):
    """An imgit internal error (bug) or invariant violation."""


class PluginError(ImgitError):
    """A plugin was registered with an invalid shape."""


class DownloadError(ImgitError):
    """Fetching a remote asset failed and the document build cannot continue.

    Carries the source URL and the local destination so callers can report
    which asset broke the build.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        url: str | None = None,
        path: Path | None = None,
        attempts: int | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.url = url
        self.path = path
        self.attempts = attempts


class RateLimitError(DownloadError):
    """The remote host answered HTTP 429 without a usable ``Retry-After``."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        url: str | None = None,
        path: Path | None = None,
        status_code: int = 429,
        retry_after: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint, url=url, path=path)
        self.status_code = status_code
        self.retry_after = retry_after


class ToolError(ImgitError):
    """An external tool (ffprobe/ffmpeg) could not run or exited with failure."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        program: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, hint=hint)
        self.program = program
        self.returncode = returncode
        self.stderr = stderr


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc*, then everything reachable through ``__cause__`` and ``__context__``."""
    pending = [exc]
    visited: set[int] = set()
    while pending:
        err = pending.pop()
        if id(err) not in visited:
            visited.add(id(err))
            yield err
            pending.extend(
                linked for linked in (err.__context__, err.__cause__) if linked is not None
            )
