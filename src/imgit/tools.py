"""Async invocation of external media tools (ffprobe, ffmpeg).

Commands are executed without a shell; option strings from the
configuration are split with ``shlex`` so quoting works as on a command line.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import shlex
from typing import TYPE_CHECKING

from imgit.errors import ToolError

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)

FFPROBE = "ffprobe"
FFMPEG = "ffmpeg"


@dataclass(frozen=True)
class ToolResult:
    """Captured outcome of a finished tool process."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def split_args(args: str | None) -> list[str]:
    """Split a configured option string into argv items."""
    return shlex.split(args) if args else []


async def run_tool(program: str, argv: Sequence[str]) -> ToolResult:
    """Run *program* with *argv* and capture its output.

    Raises:
        ToolError: When the program cannot be started or exits non-zero.
    """
    log.debug("Running %s %s", program, shlex.join(argv))
    try:
        proc = await asyncio.create_subprocess_exec(
            program,
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ToolError(
            f"Failed to start {program}: {e}",
            hint=f"Make sure {program} is installed and on PATH.",
            program=program,
        ) from e

    out, err = await proc.communicate()
    result = ToolResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )
    if not result.ok:
        detail = result.stderr.strip().splitlines()
        raise ToolError(
            f"{program} exited with code {result.returncode}"
            + (f": {detail[-1]}" if detail else ""),
            program=program,
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result
