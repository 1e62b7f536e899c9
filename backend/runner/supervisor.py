"""
Relaunch Supervisor.

Runs a task and restarts it on settled filesystem changes.
Requires Python 3.11+.
"""

import asyncio
import os
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from typing import Any, NoReturn

from utils.logger import LoggerMixin
from watcher.debouncer import DEBOUNCE_TIME, Debouncer, SettledChange
from watcher.event_source import DEFAULT_CAPACITY, WatchSession, open_session
from watcher.events import WatchSet

# Called with no arguments for every (re)start
TaskFactory = Callable[[], Awaitable[Any]]
SessionFactory = Callable[[WatchSet, int], WatchSession]

# Seconds a cancelled task gets to finish before it is left running
CANCEL_TIMEOUT = 5.0


class SupervisorState(str, Enum):
    """Lifecycle states of the supervision loop."""

    RUNNING = "running"
    WAITING_FOR_CHANGE = "waiting_for_change"
    RESTARTING = "restarting"


class Supervisor(LoggerMixin):
    """
    Restarts a task whenever the watched paths change.

    While the task runs, it is raced against the debouncer. If a change
    settles first the task is replaced by a fresh one; if the task
    finishes first (successfully or not) the supervisor waits for the
    next settled change before starting it again.

    A superseded task is left running unless cancel_on_change is set.
    Task errors are logged and never end supervision; watch errors
    (WatchSetupError, ChannelError) propagate out of run().
    """

    def __init__(
        self,
        paths: Iterable[str | os.PathLike[str]],
        task_factory: TaskFactory,
        *,
        quiet_window: float = DEBOUNCE_TIME,
        cancel_on_change: bool = False,
        capacity: int = DEFAULT_CAPACITY,
        session_factory: SessionFactory = open_session,
        cancel_timeout: float = CANCEL_TIMEOUT,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            paths: Files or directories to watch, non-recursively
            task_factory: Builds the awaitable to supervise
            quiet_window: Seconds of quiet before a change settles
            cancel_on_change: Cancel the running task when superseded
            capacity: Notifications buffered per watch session
            session_factory: Opens the watch session for the watch set
            cancel_timeout: Seconds to wait for a cancelled task to finish
        """
        if quiet_window <= 0:
            raise ValueError("quiet_window must be positive")
        self._watch_set = WatchSet.from_paths(paths)
        self._task_factory = task_factory
        self._quiet_window = quiet_window
        self._cancel_on_change = cancel_on_change
        self._capacity = capacity
        self._session_factory = session_factory
        self._cancel_timeout = cancel_timeout

        self._state: SupervisorState | None = None
        self._restarts = 0
        self._orphans: set[asyncio.Task[None]] = set()

    @property
    def watch_set(self) -> WatchSet:
        return self._watch_set

    @property
    def state(self) -> SupervisorState | None:
        """Current state, None before run() has started a task."""
        return self._state

    @property
    def restarts(self) -> int:
        """Number of restarts triggered by settled changes."""
        return self._restarts

    async def run(self) -> NoReturn:
        """
        Supervise until a fatal watch error occurs.

        The watch session is opened before the first task starts, so a
        setup failure means the task never runs.

        Raises:
            WatchSetupError: If the watch set cannot be watched
            ChannelError: If notification delivery fails
        """
        session = self._session_factory(self._watch_set, self._capacity)
        task: asyncio.Task[None] | None = None
        waiter: asyncio.Task[SettledChange] | None = None

        try:
            debouncer = Debouncer(session, quiet_window=self._quiet_window)
            while True:
                task = self._start_task()
                waiter = asyncio.create_task(debouncer.next_change())

                done, _ = await asyncio.wait(
                    {task, waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                if task in done:
                    self._state = SupervisorState.WAITING_FOR_CHANGE
                    self.log.info("process_terminated", restarting_on="file_change")
                if waiter in done:
                    change = waiter.result()
                    await self._supersede(task)
                else:
                    change = await waiter

                self._state = SupervisorState.RESTARTING
                self.log.info(
                    "change_detected",
                    kind=change.event.kind.value,
                    paths=sorted(str(p) for p in change.paths),
                )
                self._restarts += 1
        finally:
            await self._shutdown(task, waiter)
            session.close()

    def _start_task(self) -> asyncio.Task[None]:
        self._state = SupervisorState.RUNNING
        self.log.info("process_started", restarts=self._restarts)
        return asyncio.create_task(self._run_task())

    async def _run_task(self) -> None:
        try:
            await self._task_factory()
        except Exception as e:
            self.log.error(
                "process_failed",
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )

    async def _supersede(self, task: asyncio.Task[None]) -> None:
        if task.done():
            return
        if self._cancel_on_change:
            task.cancel()
            done, _ = await asyncio.wait({task}, timeout=self._cancel_timeout)
            if done:
                self.log.info("process_cancelled")
                return
            self.log.warning("process_cancel_timeout", timeout=self._cancel_timeout)
        # Keep a reference so the orphaned task is not garbage collected
        self._orphans.add(task)
        task.add_done_callback(self._orphans.discard)

    async def _shutdown(
        self,
        task: asyncio.Task[None] | None,
        waiter: asyncio.Task[SettledChange] | None,
    ) -> None:
        pending = {
            t for t in (waiter, task, *self._orphans) if t is not None and not t.done()
        }
        for t in pending:
            t.cancel()
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=self._cancel_timeout)
        if still_running:
            self.log.warning(
                "process_cancel_timeout",
                timeout=self._cancel_timeout,
                tasks=len(still_running),
            )


async def watch(
    paths: Iterable[str | os.PathLike[str]],
    task_factory: TaskFactory,
    **kwargs: Any,
) -> NoReturn:
    """
    Run task_factory() under a Supervisor watching paths.

    Keyword arguments are passed to Supervisor. Returns only by
    raising a fatal watch error.
    """
    supervisor = Supervisor(paths, task_factory, **kwargs)
    await supervisor.run()
