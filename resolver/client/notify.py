# resolver/client/notify.py
"""Success and failure signals surfaced to whoever renders the table."""
import logging
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, title: str, description: str | None = None) -> None: ...

    def error(
        self,
        title: str,
        description: str | None = None,
        field_errors: dict[str, list[str]] | None = None,
    ) -> None: ...


class LoggingNotifier:
    def success(self, title: str, description: str | None = None) -> None:
        logger.info(f"{title}: {description}" if description else title)

    def error(self, title, description=None, field_errors=None) -> None:
        message = f"{title}: {description}" if description else title
        if field_errors:
            message = f"{message} {field_errors}"
        logger.warning(message)


@dataclass
class Notification:
    level: str
    title: str
    description: str | None = None
    field_errors: dict[str, list[str]] = field(default_factory=dict)


class RecordingNotifier(LoggingNotifier):
    """Keeps every notification, for views that poll and for tests."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def success(self, title, description=None) -> None:
        super().success(title, description)
        self.notifications.append(Notification("success", title, description))

    def error(self, title, description=None, field_errors=None) -> None:
        super().error(title, description, field_errors)
        self.notifications.append(Notification("error", title, description, field_errors or {}))

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self.notifications if n.level == "error"]

    @property
    def successes(self) -> list[Notification]:
        return [n for n in self.notifications if n.level == "success"]
