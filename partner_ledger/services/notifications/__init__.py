"""
Notification Services Package

Surfaces success/error feedback to whatever user interface drives the ledger.
"""

from partner_ledger.services.notifications.notifier import (
    LoggingNotifier,
    Notification,
    NotificationGatewayInterface,
    RecordingNotifier,
)

__all__ = [
    "LoggingNotifier",
    "Notification",
    "NotificationGatewayInterface",
    "RecordingNotifier",
]
