"""
Relaunch Runner Package.

Change-triggered restarts of a long-running task.
Requires Python 3.11+.
"""

from runner.command import CommandFailedError, command_task_factory
from runner.supervisor import Supervisor, SupervisorState, TaskFactory, watch

__all__ = [
    "Supervisor",
    "SupervisorState",
    "TaskFactory",
    "watch",
    "CommandFailedError",
    "command_task_factory",
]
