"""Pipeline logging with independently suppressible severities.

Messages go to the ``imgit`` stdlib logger; ``LogOptions`` decides which of
the info/warn/err channels are emitted at all. A disabled configuration
(``log=None``) silences every channel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from imgit.config import LogOptions

LOGGER_NAME = "imgit"


class PipelineLog:
    """Thin facade over a ``logging.Logger`` honoring ``LogOptions``."""

    def __init__(
        self, options: LogOptions | None, logger: logging.Logger | None = None
    ) -> None:
        self._logger = logger or logging.getLogger(LOGGER_NAME)
        self._info = bool(options and options.info)
        self._warn = bool(options and options.warn)
        self._err = bool(options and options.err)

    def info(self, msg: str, *args: Any) -> None:
        if self._info:
            self._logger.info(msg, *args)

    def warn(self, msg: str, *args: Any) -> None:
        if self._warn:
            self._logger.warning(msg, *args)

    def err(self, msg: str, *args: Any) -> None:
        if self._err:
            self._logger.error(msg, *args)
