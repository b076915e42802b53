"""Notification sender port — merchant, customer, rider and operations alerts."""

from abc import ABC, abstractmethod
from enum import Enum


class NotificationChannel(Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    INTERNAL = "internal"


class NotifierPort(ABC):
    """Abstract interface for notification senders. Fire-and-forget."""

    @abstractmethod
    def send(self, recipient: str, channel: str, title: str, body: str, data: dict | None = None) -> dict:
        """Send a notification.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
