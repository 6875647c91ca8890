"""Notification outbox routes."""

from fastapi import APIRouter

from canteen.core.rbac import CurrentUser
from canteen.db.session import DbSession
from canteen.models.notification import Notification
from canteen.services.notification_service import NotificationService

router = APIRouter()


def _serialize(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "reference_id": notification.reference_id,
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


@router.get("")
def list_notifications(db: DbSession, current_user: CurrentUser):
    """Latest notifications of the caller, newest first."""
    return [_serialize(n) for n in NotificationService(db).list_for_user(current_user.user_id)]


@router.get("/unread-count")
def unread_count(db: DbSession, current_user: CurrentUser):
    return {"count": NotificationService(db).unread_count(current_user.user_id)}


@router.patch("/mark-all-read")
def mark_all_read(db: DbSession, current_user: CurrentUser):
    updated = NotificationService(db).mark_all_read(current_user.user_id)
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/read")
def mark_read(notification_id: int, db: DbSession, current_user: CurrentUser):
    notification = NotificationService(db).mark_read(notification_id, current_user.user_id)
    return _serialize(notification)
