"""
Notification service: persist notifications and relay them over the real-time channel.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from hrtrack.core.constants import NOTIFICATION_EVENT
from hrtrack.core.errors import NotFound
from hrtrack.models.notification import Notification, NotificationType
from hrtrack.services.realtime import Publisher
from hrtrack.utils.datetime_utils import ensure_utc, iso_local, now_utc
from hrtrack.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20


def notification_payload(notification: Notification) -> Dict[str, Any]:
    """JSON-safe representation of a notification for live delivery."""
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "title": notification.title,
        "message": notification.message,
        "type": sanitize_for_json(notification.type),
        "related_id": notification.related_id,
        "is_read": notification.is_read,
        "metadata": sanitize_for_json(notification.meta_json or {}),
        "created_at": iso_local(notification.created_at),
    }


class NotificationEmitter:
    """
    Creates notifications and pushes them to the recipient.

    The stored row is the source of truth. Live delivery is advisory: publisher failures are
    logged and never undo or fail the persisted notification.
    """

    def __init__(self, publisher: Publisher):
        self.publisher = publisher

    def notify(
        self,
        db: Session,
        recipient_id: int,
        title: str,
        message: str,
        type: NotificationType,
        related_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        extra_payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Notification:
        notification = Notification(
            user_id=recipient_id,
            title=title,
            message=message,
            type=type,
            related_id=related_id,
            is_read=False,
            meta_json=sanitize_for_json(metadata or {}),
            created_at=ensure_utc(now or now_utc()),
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info(
            "notification created: id=%s user_id=%s type=%s related_id=%s",
            notification.id, recipient_id, type.value, related_id,
        )

        payload = notification_payload(notification)
        if extra_payload:
            payload.update(sanitize_for_json(extra_payload))

        try:
            delivered = self.publisher.publish(recipient_id, NOTIFICATION_EVENT, payload)
        except Exception as e:
            logger.warning(
                "real-time delivery failed: notification_id=%s user_id=%s error=%s",
                notification.id, recipient_id, e,
            )
        else:
            if not delivered:
                logger.debug("no live session for user_id=%s; notification_id=%s stored only", recipient_id, notification.id)
            else:
                logger.info("notification sent to user %s (%s sessions)", recipient_id, delivered)

        return notification


def list_notifications(db: Session, user_id: int, limit: int = DEFAULT_LIST_LIMIT) -> List[Notification]:
    """Newest notifications of the user."""
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def count_unread(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )


def mark_read(db: Session, notification_id: int, user_id: int) -> Notification:
    """
    Mark one of the user's notifications as read. Marking twice is a no-op.

    Raises:
        NotFound: no notification with that id belongs to the user
    """
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if notification is None:
        raise NotFound("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        logger.info("notification read: id=%s user_id=%s", notification_id, user_id)
    return notification
