"""
Relaunch Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from watcher.errors import ChannelError
from watcher.events import ChangeEvent, ChangeKind, WatchSet


class FakeSession:
    """In-memory stand-in for a WatchSession, fed directly by tests."""

    def __init__(self, watch_set: WatchSet | None = None) -> None:
        self.watch_set = watch_set
        self.closed = False
        self._queue: asyncio.Queue[ChangeEvent | ChannelError] = asyncio.Queue()

    def push(self, kind: ChangeKind, *paths: str) -> None:
        self._queue.put_nowait(ChangeEvent.of(kind, *(paths or ("watched.txt",))))

    def fail(self, message: str = "watch failed") -> None:
        self._queue.put_nowait(ChannelError(message))

    async def receive(self) -> ChangeEvent:
        item = await self._queue.get()
        if isinstance(item, ChannelError):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


async def feed(session: FakeSession, script: list[tuple[float, ChangeKind]]) -> None:
    """Push events after the given delays, each relative to the previous one."""
    for delay, kind in script:
        await asyncio.sleep(delay)
        session.push(kind)


async def until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Wait for a condition to hold, failing the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def session() -> FakeSession:
    """A fake watch session with no events queued."""
    return FakeSession()


@pytest.fixture
def session_factory(session: FakeSession) -> Callable[[WatchSet, int], FakeSession]:
    """Session factory handing out the fake session."""

    def factory(watch_set: WatchSet, capacity: int) -> FakeSession:
        session.watch_set = watch_set
        return session

    return factory


@pytest.fixture
def watched_dir(tmp_path: Path) -> Path:
    """A real directory with one file in it."""
    (tmp_path / "main.py").write_text("print('hello')\n")
    return tmp_path
