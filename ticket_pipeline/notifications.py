"""
User-visible notifications.

Stage failures and completions are reported here as transient messages
rather than raised across stage boundaries. The CLI prints them, and the
dashboard API hands them out via ``/pipelines/{ticket_id}/notifications``.
"""

from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

import structlog
from pydantic import BaseModel, Field

from .enums import NotificationLevel, Stage
from .schemas import utc_now

logger = structlog.get_logger()


class Notification(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    level: NotificationLevel
    message: str
    stage: Optional[Stage] = None
    created_at: datetime = Field(default_factory=utc_now)


class NotificationCenter:
    """Bounded queue of notifications for one pipeline."""

    def __init__(self, ticket_id: str, max_items: int = 100):
        self.ticket_id = ticket_id
        self._items: Deque[Notification] = deque(maxlen=max_items)
        self.log = logger.bind(ticket_id=ticket_id)

    def __len__(self) -> int:
        return len(self._items)

    def notify(
        self,
        level: NotificationLevel,
        message: str,
        stage: Optional[Stage] = None,
    ) -> Notification:
        notification = Notification(level=level, message=message, stage=stage)
        self._items.append(notification)
        self.log.info(
            "notification",
            level=level.value,
            stage=stage.value if stage else None,
            message=message,
        )
        return notification

    def info(self, message: str, stage: Optional[Stage] = None) -> Notification:
        return self.notify(NotificationLevel.INFO, message, stage)

    def success(self, message: str, stage: Optional[Stage] = None) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message, stage)

    def warning(self, message: str, stage: Optional[Stage] = None) -> Notification:
        return self.notify(NotificationLevel.WARNING, message, stage)

    def error(self, message: str, stage: Optional[Stage] = None) -> Notification:
        return self.notify(NotificationLevel.ERROR, message, stage)

    def recent(self, limit: Optional[int] = None) -> List[Notification]:
        items = list(self._items)
        return items[-limit:] if limit else items

    def drain(self) -> List[Notification]:
        """Return every pending notification and clear the queue."""
        items = list(self._items)
        self._items.clear()
        return items
