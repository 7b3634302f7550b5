"""
Notification Gateway

The ledger tells the user what happened ("Cost added", "A partner with this
email already exists") through this interface. Calls are fire-and-forget:
the ledger never reads a return value and a failing notifier must not undo
a ledger operation.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Literal, Optional

import structlog
from pydantic import BaseModel, Field


class NotificationGatewayInterface(ABC):
    """Abstract interface for user feedback."""

    @abstractmethod
    def notify_success(self, message: str) -> None:
        pass

    @abstractmethod
    def notify_error(self, message: str) -> None:
        pass


class Notification(BaseModel):
    """A message that was shown (or would have been shown) to the user."""

    level: Literal["success", "error"]
    message: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class LoggingNotifier(NotificationGatewayInterface):
    """Writes notifications to the structured log. Default for headless use."""

    def __init__(self):
        self._logger = structlog.get_logger(__name__)

    def notify_success(self, message: str) -> None:
        self._logger.info("user_notification", level="success", message=message)

    def notify_error(self, message: str) -> None:
        self._logger.warning("user_notification", level="error", message=message)


class RecordingNotifier(NotificationGatewayInterface):
    """
    Keeps every notification in memory.

    A UI layer can drain it after each action to render toasts;
    tests use it to assert on user feedback.
    """

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify_success(self, message: str) -> None:
        self.notifications.append(Notification(level="success", message=message))

    def notify_error(self, message: str) -> None:
        self.notifications.append(Notification(level="error", message=message))

    @property
    def last(self) -> Optional[Notification]:
        return self.notifications[-1] if self.notifications else None

    def messages(self, level: Optional[str] = None) -> list[str]:
        return [n.message for n in self.notifications if level is None or n.level == level]

    def drain(self) -> list[Notification]:
        drained, self.notifications = self.notifications, []
        return drained
