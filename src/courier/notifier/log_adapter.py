"""Notifier that only writes a structured log line per notification."""

from uuid import uuid4

import structlog

from courier.notifier.port import NotifierPort

logger = structlog.get_logger(__name__)


class LogNotifier(NotifierPort):
    def send(self, recipient: str, channel: str, title: str, body: str, data: dict | None = None) -> dict:
        message_id = f"log-{uuid4().hex[:12]}"
        logger.info(
            "Notification sent",
            message_id=message_id,
            recipient=recipient,
            channel=channel,
            title=title,
            data=data or {},
        )
        return {"message_id": message_id, "status": "sent"}
