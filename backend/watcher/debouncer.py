"""
Relaunch Debouncer.

Coalesces bursts of filesystem notifications into settled changes.
Requires Python 3.11+.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from utils.logger import LoggerMixin
from watcher.events import ChangeEvent

# Time without update required to pass before a burst is over
DEBOUNCE_TIME = 0.2


class ChangeSource(Protocol):
    """Anything the debouncer can pull raw change events from."""

    async def receive(self) -> ChangeEvent: ...


@dataclass
class DebounceState:
    """Arrival time of the last relevant notification in the current burst."""

    quiet_window: float
    last_observed: float | None = None

    def observe(self, now: float) -> None:
        self.last_observed = now

    def remaining(self, now: float) -> float:
        """Seconds left before the burst settles."""
        if self.last_observed is None:
            return self.quiet_window
        return max(self.last_observed + self.quiet_window - now, 0.0)

    def reset(self) -> None:
        self.last_observed = None


@dataclass
class SettledChange:
    """A burst of relevant notifications that has gone quiet."""

    event: ChangeEvent
    paths: set[Path] = field(default_factory=set)
    count: int = 0

    def add(self, event: ChangeEvent) -> None:
        self.event = event
        self.paths.update(event.paths)
        self.count += 1


class Debouncer(LoggerMixin):
    """
    Turns a noisy change source into one signal per settled burst.

    Time-windowed policy: the first relevant notification opens a
    burst and every further relevant one pushes the deadline back to
    quiet_window after itself. The burst settles once the deadline
    passes with no relevant notification. Notifications classified as
    OTHER are consumed without touching the clock.

    Waiting suspends on the source with a timeout, so the event loop
    is never spun while a burst settles.
    """

    def __init__(
        self,
        source: ChangeSource,
        quiet_window: float = DEBOUNCE_TIME,
    ) -> None:
        """
        Initialize the debouncer.

        Args:
            source: Channel or session delivering raw change events
            quiet_window: Seconds of quiet after the last relevant event
        """
        if quiet_window <= 0:
            raise ValueError("quiet_window must be positive")
        self._source = source
        self._state = DebounceState(quiet_window=quiet_window)
        self._lock = asyncio.Lock()

    @property
    def quiet_window(self) -> float:
        return self._state.quiet_window

    @property
    def state(self) -> DebounceState:
        return self._state

    async def next_change(self) -> SettledChange:
        """
        Wait for the next settled change.

        Returns:
            The coalesced burst, carrying its last relevant event

        Raises:
            ChannelError: If the source fails
        """
        async with self._lock:
            loop = asyncio.get_running_loop()
            self._state.reset()

            event = await self._next_relevant()
            self._state.observe(loop.time())
            settled = SettledChange(event=event)
            settled.add(event)

            while True:
                remaining = self._state.remaining(loop.time())
                if remaining <= 0:
                    break
                try:
                    event = await asyncio.wait_for(self._source.receive(), remaining)
                except TimeoutError:
                    break
                if not event.is_relevant:
                    continue
                self._state.observe(loop.time())
                settled.add(event)

            self.log.debug(
                "change_settled",
                kind=settled.event.kind.value,
                paths=sorted(str(p) for p in settled.paths),
                count=settled.count,
            )
            return settled

    async def _next_relevant(self) -> ChangeEvent:
        while True:
            event = await self._source.receive()
            if event.is_relevant:
                return event
