"""
Relaunch Event Source.

Bridges watchdog's observer threads to the asyncio event loop.
Requires Python 3.11+.
"""

import asyncio
import os
from collections.abc import Iterable
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from utils.logger import LoggerMixin
from watcher.errors import ChannelError, WatchSetupError
from watcher.events import ChangeEvent, ChangeKind, WatchSet

DEFAULT_CAPACITY = 16

_KIND_BY_EVENT_TYPE = {
    EVENT_TYPE_CREATED: ChangeKind.CREATE,
    EVENT_TYPE_MODIFIED: ChangeKind.MODIFY,
    EVENT_TYPE_DELETED: ChangeKind.REMOVE,
    # A rename changes the name of the entry
    EVENT_TYPE_MOVED: ChangeKind.MODIFY,
}


def to_change_event(event: FileSystemEvent) -> ChangeEvent:
    """
    Translate a watchdog event into a change event.

    Moves report both the source and destination path. Event types
    other than created, modified, deleted and moved are classified
    as OTHER.
    """
    kind = _KIND_BY_EVENT_TYPE.get(event.event_type, ChangeKind.OTHER)
    paths = [event.src_path]
    dest_path = getattr(event, "dest_path", "")
    if dest_path:
        paths.append(dest_path)
    return ChangeEvent.of(kind, *(os.fsdecode(p) for p in paths))


class ChangeChannel(LoggerMixin):
    """
    Bounded channel from observer threads to a single async consumer.

    send() may be called from any thread and never blocks: items are
    handed to the event loop and dropped if the queue is full or the
    channel has been closed. A delivery failure is remembered so it
    reaches the consumer even when its slot was dropped.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._loop = loop
        self._queue: asyncio.Queue[ChangeEvent | ChannelError] = asyncio.Queue(
            maxsize=capacity
        )
        self._failure: ChannelError | None = None
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        """Number of messages waiting to be received."""
        return self._queue.qsize()

    def send(self, item: ChangeEvent | ChannelError) -> None:
        """Deliver a message from any thread, best effort."""
        if self._closed or self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self._put, item)
        except RuntimeError:
            # Loop closed after the check above; the receiver is gone.
            return

    def _put(self, item: ChangeEvent | ChannelError) -> None:
        if self._closed:
            return
        if isinstance(item, ChannelError) and self._failure is None:
            self._failure = item
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self.log.debug(
                "change_event_dropped",
                item=repr(item),
                capacity=self._queue.maxsize,
            )

    async def receive(self) -> ChangeEvent:
        """
        Wait for the next change event.

        Raises:
            ChannelError: If delivery failed
        """
        if self._failure is not None:
            raise self._failure
        item = await self._queue.get()
        if isinstance(item, ChannelError):
            raise item
        return item

    def close(self) -> None:
        """Stop accepting messages; later sends are discarded."""
        self._closed = True


class ChannelEventHandler(FileSystemEventHandler):
    """Forwards every watchdog notification to a change channel."""

    def __init__(self, channel: ChangeChannel) -> None:
        super().__init__()
        self._channel = channel

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            change = to_change_event(event)
        except Exception as e:
            failure = ChannelError(f"failed to translate {event!r}: {e}")
            failure.__cause__ = e
            self._channel.send(failure)
            return
        self._channel.send(change)


class WatchSession(LoggerMixin):
    """
    One watch subscription and its receiving channel.

    The session owns the observer; closing it releases every watch.
    """

    def __init__(
        self,
        watch_set: WatchSet,
        channel: ChangeChannel,
        observer: Any,
    ) -> None:
        self._watch_set = watch_set
        self._channel = channel
        self._observer = observer
        self._closed = False

    @property
    def watch_set(self) -> WatchSet:
        return self._watch_set

    @property
    def channel(self) -> ChangeChannel:
        return self._channel

    @property
    def is_open(self) -> bool:
        return not self._closed

    async def receive(self) -> ChangeEvent:
        """Wait for the next raw change event."""
        return await self._channel.receive()

    def report_error(self, error: BaseException) -> None:
        """Deliver a watch failure to the consumer. Thread safe."""
        failure = ChannelError(str(error) or type(error).__name__)
        failure.__cause__ = error
        self._channel.send(failure)

    def close(self) -> None:
        """Release the watches. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._channel.close()
        _shutdown_observer(self._observer)
        self.log.info("watch_session_closed", paths=[str(p) for p in self._watch_set])

    async def __aenter__(self) -> "WatchSession":
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()


def _shutdown_observer(observer: Any, timeout: float = 5.0) -> None:
    observer.stop()
    if observer.is_alive():
        observer.join(timeout=timeout)


def open_session(
    paths: Iterable[str | os.PathLike[str]],
    capacity: int = DEFAULT_CAPACITY,
) -> WatchSession:
    """
    Start watching paths non-recursively.

    Must be called from a running event loop; notifications are
    delivered to that loop.

    Args:
        paths: Files or directories to watch, at least one
        capacity: Notifications buffered before new ones are dropped

    Returns:
        An open WatchSession

    Raises:
        WatchSetupError: If any path cannot be watched
    """
    watch_set = paths if isinstance(paths, WatchSet) else WatchSet.from_paths(paths)
    loop = asyncio.get_running_loop()
    channel = ChangeChannel(loop, capacity=capacity)
    handler = ChannelEventHandler(channel)
    observer = Observer()

    for path in watch_set:
        if not path.exists():
            raise WatchSetupError(f"cannot watch {path}: no such file or directory")
        try:
            observer.schedule(handler, str(path), recursive=False)
        except OSError as e:
            raise WatchSetupError(f"cannot watch {path}: {e}") from e

    try:
        observer.start()
    except OSError as e:
        _shutdown_observer(observer)
        raise WatchSetupError(f"cannot start watching: {e}") from e

    session = WatchSession(watch_set, channel, observer)
    session.log.info(
        "watch_session_started",
        paths=[str(p) for p in watch_set],
        capacity=capacity,
    )
    return session
