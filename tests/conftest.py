"""Shared pytest fixtures and test helpers for querystate tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from querystate.infrastructure.history import MemoryHistory
from querystate.infrastructure.session import SessionContext


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def history() -> MemoryHistory:
    return MemoryHistory("/dashboard")


@pytest.fixture
def session() -> SessionContext:
    """An unauthenticated session."""
    return SessionContext()


@pytest.fixture
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run in an empty temp directory with no config env vars set.

    Use via ``@pytest.mark.usefixtures("_isolated_cwd")`` on command test
    classes.
    """
    monkeypatch.chdir(tmp_path)
    for name in ("QUERYSTATE_CONFIG", "QUERYSTATE_TOKEN", "QUERYSTATE_API__BASE_URL"):
        monkeypatch.delenv(name, raising=False)
