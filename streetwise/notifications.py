"""
Streetwise Notifications

Transient user-facing messages (the web client's toasts), printed to the
terminal and kept in a short history.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional

from rich.console import Console
from rich.markup import escape


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Notification:
    level: NotificationLevel
    message: str
    created_at: float = field(default_factory=time.time)


class Notifier:
    """
    Shows notifications on a rich console.

    Usage:
        notifier = Notifier(console)
        notifier.success("Security report submitted!")
        notifier.error("Network error")
    """

    STYLES = {
        NotificationLevel.SUCCESS: ("✓", "green"),
        NotificationLevel.ERROR: ("✗", "red"),
        NotificationLevel.WARNING: ("!", "yellow"),
        NotificationLevel.INFO: ("•", "cyan"),
    }

    def __init__(self, console: Optional[Console] = None, max_history: int = 50, quiet: bool = False):
        self.console = console or Console()
        self.quiet = quiet
        self._history: Deque[Notification] = deque(maxlen=max_history)

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._history.append(notification)
        if not self.quiet:
            icon, color = self.STYLES[level]
            self.console.print(f"[{color}]{icon} {escape(message)}[/{color}]")
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, message)

    def warning(self, message: str) -> Notification:
        return self.notify(NotificationLevel.WARNING, message)

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, message)

    @property
    def history(self) -> List[Notification]:
        return list(self._history)

    @property
    def last(self) -> Optional[Notification]:
        return self._history[-1] if self._history else None

    def clear(self) -> None:
        self._history.clear()
