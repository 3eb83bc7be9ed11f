"""Pytest configuration and fixtures.

Provides environment isolation, a fake ffprobe/ffmpeg runner and a factory
for run contexts backed by ``httpx.MockTransport``. Fixtures marked autouse
apply to every test.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from imgit import tools
from imgit.config import Config
from imgit.context import Context
from imgit.errors import ToolError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeTools:
    """Stand-in for ``imgit.tools.run_tool``.

    ffprobe answers with ``sizes[path]`` (or ``default_size``); ffmpeg writes
    a small file at its output path. Programs listed in ``failing`` exit with
    code 1 instead.
    """

    sizes: dict[str, str] = field(default_factory=dict)
    default_size: str = "640x480"
    failing: set[str] = field(default_factory=set)
    delay: float = 0.01
    calls: list[tuple[str, list[str]]] = field(default_factory=list)

    def calls_to(self, program: str) -> list[list[str]]:
        return [argv for prog, argv in self.calls if prog == program]

    async def __call__(self, program: str, argv: Sequence[str]) -> tools.ToolResult:
        argv = list(argv)
        self.calls.append((program, argv))
        await asyncio.sleep(self.delay)
        if program in self.failing:
            raise ToolError(
                f"{program} exited with code 1: boom",
                program=program,
                returncode=1,
                stderr="boom",
            )
        if program == tools.FFPROBE:
            out = self.sizes.get(argv[-1], self.default_size)
            return tools.ToolResult(returncode=0, stdout=f"{out}\n", stderr="")
        Path(argv[-1]).write_bytes(b"encoded")
        return tools.ToolResult(returncode=0, stdout="", stderr="")


@dataclass
class RecordingSleep:
    """Records requested waits and returns immediately."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@dataclass
class RecordingTransport:
    """``httpx.MockTransport`` handler that records requests.

    ``routes`` maps a URL to a response factory or to a list of them consumed
    in order (the last one repeats). Unknown URLs answer 404.
    """

    routes: dict[str, Any] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        return route(request)

    def count(self, url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == url)


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_imgit_env(request, monkeypatch, tmp_path):
    """Clear IMGIT_* variables and point pyproject lookups at an empty file.

    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("IMGIT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("IMGIT_PYPROJECT_PATH", str(tmp_path / "absent.toml"))


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_tools(monkeypatch) -> FakeTools:
    """Replace the external tool runner for the duration of a test."""
    fake = FakeTools()
    monkeypatch.setattr(tools, "run_tool", fake)
    return fake


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def local_root(tmp_path) -> Path:
    root = tmp_path / "public" / "assets"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def make_config(tmp_path, local_root) -> Callable[..., Config]:
    """Build a ``Config`` rooted in the test's temporary directory."""

    def _make(**overrides: Any) -> Config:
        values: dict[str, Any] = {
            "local": local_root,
            "cache": tmp_path / ".cache" / "imgit",
        }
        values.update(overrides)
        return Config(**values)

    return _make


@pytest.fixture
def make_ctx(make_config, transport, sleep) -> Callable[..., Context]:
    """Build a run ``Context`` whose HTTP traffic goes to ``transport``."""

    def _make(config: Config | None = None, **overrides: Any) -> Context:
        cfg = config or make_config(**overrides)
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        return Context.create(cfg, client=client, sleep=sleep)

    return _make
