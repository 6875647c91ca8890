"""Notification outbox: append per-user messages, let owners mark them read."""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from canteen.core.config import settings
from canteen.core.errors import NotFound
from canteen.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def push(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = "general",
        reference_id: Optional[str] = None,
    ) -> Notification:
        """Append a notification. The caller owns the transaction."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            reference_id=reference_id,
            is_read=False,
        )
        self.db.add(notification)
        return notification

    def list_for_user(self, user_id: int, limit: Optional[int] = None) -> list[Notification]:
        limit = limit or settings.notification_page_size
        return list(self.db.scalars(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        ))

    def mark_read(self, notification_id: int, user_id: int) -> Notification:
        """Mark one of the owner's notifications read. Re-marking is a no-op."""
        notification = self.db.scalar(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if notification is None:
            raise NotFound("Notification not found")
        if not notification.is_read:
            notification.is_read = True
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, user_id: int) -> int:
        """Mark every unread notification of the owner read; returns how many changed."""
        result = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def unread_count(self, user_id: int) -> int:
        return self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        ) or 0
