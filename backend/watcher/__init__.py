"""
Relaunch File Watcher Package.

Filesystem notifications and debouncing for the supervisor.
Requires Python 3.11+.
"""

from watcher.debouncer import DEBOUNCE_TIME, Debouncer, SettledChange
from watcher.errors import ChannelError, TaskError, WatcherError, WatchSetupError
from watcher.event_source import WatchSession, open_session
from watcher.events import ChangeEvent, ChangeKind, WatchSet

__all__ = [
    "DEBOUNCE_TIME",
    "Debouncer",
    "SettledChange",
    "ChangeEvent",
    "ChangeKind",
    "WatchSet",
    "WatchSession",
    "open_session",
    "WatcherError",
    "WatchSetupError",
    "ChannelError",
    "TaskError",
]
