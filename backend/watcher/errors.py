"""
Relaunch Watcher Errors.

Watch setup and delivery failures are fatal to supervision;
task failures are reported and recovered.
"""


class WatcherError(Exception):
    """Base class for all watcher errors."""


class WatchSetupError(WatcherError):
    """A path in the watch set could not be watched."""


class ChannelError(WatcherError):
    """Change notification delivery failed mid-session."""


class TaskError(WatcherError):
    """A supervised task reported a failure."""
