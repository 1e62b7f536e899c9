"""
Relaunch Command Tasks.

Task factories that run an external command as the supervised task.
Requires Python 3.11+.
"""

import asyncio
import functools
import os
import shlex
from collections.abc import Mapping, Sequence

from runner.supervisor import TaskFactory
from utils.logger import get_logger
from watcher.errors import TaskError

logger = get_logger(__name__)

# Seconds a terminated command gets before it is killed
KILL_TIMEOUT = 5.0


class CommandFailedError(TaskError):
    """The supervised command exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(f"{shlex.join(self.argv)} exited with code {returncode}")


async def run_command(
    argv: Sequence[str],
    *,
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
    kill_timeout: float = KILL_TIMEOUT,
) -> None:
    """
    Run a command to completion.

    The command inherits stdin, stdout and stderr. Cancelling the
    coroutine terminates the command, killing it if it outlives
    kill_timeout.

    Raises:
        CommandFailedError: If the command exits with a non-zero status
        OSError: If the command cannot be started
    """
    process = await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        env=dict(env) if env is not None else None,
    )
    logger.debug("command_started", argv=list(argv), pid=process.pid)
    try:
        returncode = await process.wait()
    except asyncio.CancelledError:
        await _terminate(process, kill_timeout)
        raise
    if returncode != 0:
        raise CommandFailedError(argv, returncode)


async def _terminate(process: asyncio.subprocess.Process, timeout: float) -> None:
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout)
    except TimeoutError:
        logger.warning("command_killed", pid=process.pid, timeout=timeout)
        process.kill()
        await process.wait()


def command_task_factory(
    argv: Sequence[str],
    *,
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
    kill_timeout: float = KILL_TIMEOUT,
) -> TaskFactory:
    """
    Build a task factory that runs argv on every call.

    Args:
        argv: Program and arguments, not passed through a shell
        cwd: Working directory for the command
        env: Environment for the command, inherited when None
        kill_timeout: Grace period after terminate() before kill()
    """
    if not argv:
        raise ValueError("argv must name a program to run")
    return functools.partial(
        run_command,
        list(argv),
        cwd=cwd,
        env=env,
        kill_timeout=kill_timeout,
    )
