"""
Tests for the Event Source adapter.

Requires Python 3.11+.
"""

import asyncio
from pathlib import Path

import pytest
from watchdog.events import (
    DirDeletedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from watcher.debouncer import Debouncer
from watcher.errors import ChannelError, WatchSetupError
from watcher.event_source import ChangeChannel, open_session, to_change_event
from watcher.events import ChangeEvent, ChangeKind, WatchSet


class TestToChangeEvent:
    """Test cases for watchdog event translation."""

    def test_created(self):
        """Test created files map to CREATE."""
        change = to_change_event(FileCreatedEvent("/srv/app/main.py"))
        assert change == ChangeEvent.of(ChangeKind.CREATE, "/srv/app/main.py")

    def test_modified(self):
        """Test modified files map to MODIFY."""
        change = to_change_event(FileModifiedEvent("/srv/app/main.py"))
        assert change.kind is ChangeKind.MODIFY
        assert change.is_relevant

    def test_deleted_directory(self):
        """Test deleted directories map to REMOVE."""
        change = to_change_event(DirDeletedEvent("/srv/app/build"))
        assert change.kind is ChangeKind.REMOVE
        assert change.paths == frozenset({Path("/srv/app/build")})

    def test_moved_reports_both_paths(self):
        """Test renames map to MODIFY with source and destination."""
        change = to_change_event(FileMovedEvent("/srv/app/a.py", "/srv/app/b.py"))
        assert change.kind is ChangeKind.MODIFY
        assert change.paths == frozenset({Path("/srv/app/a.py"), Path("/srv/app/b.py")})

    def test_closed_is_other(self):
        """Test close notifications are not relevant changes."""
        change = to_change_event(FileClosedEvent("/srv/app/main.py"))
        assert change.kind is ChangeKind.OTHER
        assert not change.is_relevant

    def test_bytes_paths_are_decoded(self):
        """Test bytes paths from the OS are decoded."""
        change = to_change_event(FileModifiedEvent(b"/srv/app/main.py"))
        assert change.paths == frozenset({Path("/srv/app/main.py")})


class TestWatchSet:
    """Test cases for WatchSet."""

    def test_duplicates_removed_in_order(self):
        """Test each path is kept once, first occurrence wins."""
        watch_set = WatchSet.from_paths(["src", "conf.yaml", "src", Path("conf.yaml")])
        assert list(watch_set) == [Path("src"), Path("conf.yaml")]
        assert len(watch_set) == 2

    def test_empty_rejected(self):
        """Test an empty watch set is refused."""
        with pytest.raises(WatchSetupError):
            WatchSet.from_paths([])


class TestChangeChannel:
    """Test cases for ChangeChannel."""

    @pytest.mark.asyncio
    async def test_fifo_delivery_from_another_thread(self):
        """Test events sent from a thread arrive in order."""
        channel = ChangeChannel(asyncio.get_running_loop(), capacity=16)
        events = [ChangeEvent.of(ChangeKind.MODIFY, f"f{i}.txt") for i in range(3)]

        await asyncio.to_thread(lambda: [channel.send(e) for e in events])

        received = [await asyncio.wait_for(channel.receive(), 1.0) for _ in events]
        assert received == events

    @pytest.mark.asyncio
    async def test_full_channel_drops_newest(self):
        """Test overflow drops events instead of blocking the sender."""
        channel = ChangeChannel(asyncio.get_running_loop(), capacity=4)
        events = [ChangeEvent.of(ChangeKind.MODIFY, f"f{i}.txt") for i in range(10)]

        await asyncio.to_thread(lambda: [channel.send(e) for e in events])
        await asyncio.sleep(0.05)

        assert channel.qsize() == 4
        assert await channel.receive() == events[0]

    @pytest.mark.asyncio
    async def test_closed_channel_discards(self):
        """Test sends after close are ignored."""
        channel = ChangeChannel(asyncio.get_running_loop())
        channel.close()

        channel.send(ChangeEvent.of(ChangeKind.CREATE, "new.txt"))
        await asyncio.sleep(0.01)

        assert channel.closed
        assert channel.qsize() == 0

    @pytest.mark.asyncio
    async def test_failure_survives_overflow(self):
        """Test a delivery failure reaches the consumer even when the queue is full."""
        channel = ChangeChannel(asyncio.get_running_loop(), capacity=1)
        channel.send(ChangeEvent.of(ChangeKind.CREATE, "new.txt"))
        channel.send(ChannelError("observer died"))
        await asyncio.sleep(0.01)

        with pytest.raises(ChannelError, match="observer died"):
            await channel.receive()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("capacity", [0, -1])
    async def test_rejects_unbounded_capacity(self, capacity: int):
        """Test a channel must hold at least one message."""
        with pytest.raises(ValueError):
            ChangeChannel(asyncio.get_running_loop(), capacity=capacity)


class TestOpenSession:
    """Test cases for open_session against the real filesystem."""

    @pytest.mark.asyncio
    async def test_missing_path_fails_setup(self, watched_dir: Path):
        """Test a nonexistent path fails the whole session."""
        with pytest.raises(WatchSetupError, match="no such file"):
            open_session([watched_dir, watched_dir / "missing"])

    @pytest.mark.asyncio
    async def test_empty_paths_fail_setup(self):
        """Test that at least one path is required."""
        with pytest.raises(WatchSetupError):
            open_session([])

    @pytest.mark.asyncio
    async def test_zero_capacity_rejected(self, watched_dir: Path):
        """Test an unbounded channel cannot be requested through open_session."""
        with pytest.raises(ValueError):
            open_session([watched_dir], capacity=0)

    @pytest.mark.asyncio
    async def test_detects_file_creation(self, watched_dir: Path):
        """Test a new file in a watched directory produces a change."""
        async with open_session([watched_dir]) as session:
            assert session.is_open
            debouncer = Debouncer(session, quiet_window=0.05)

            (watched_dir / "added.py").write_text("x = 1\n")
            change = await asyncio.wait_for(debouncer.next_change(), 5.0)

            assert any(p.name == "added.py" for p in change.paths)

        assert not session.is_open

    @pytest.mark.asyncio
    async def test_report_error_is_delivered(self, watched_dir: Path):
        """Test an injected failure surfaces as ChannelError."""
        session = open_session([watched_dir])
        try:
            await asyncio.to_thread(session.report_error, OSError("watch descriptor lost"))

            with pytest.raises(ChannelError, match="descriptor lost") as exc_info:
                await asyncio.wait_for(session.receive(), 1.0)
            assert isinstance(exc_info.value.__cause__, OSError)
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, watched_dir: Path):
        """Test closing twice is harmless."""
        session = open_session([watched_dir])
        session.close()
        session.close()
        assert not session.is_open
        assert session.channel.closed
