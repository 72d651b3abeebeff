import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from villa_booking.db.models import ADMIN_ROLES, User
from villa_booking.db.session import SessionLocal
from villa_booking.services.notification_service import BookingNotification, NotificationKind
from villa_booking.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

SUBJECTS = {
    NotificationKind.NEW_BOOKING: "New booking - action required",
    NotificationKind.OVERLAP_UPDATE: "Booking updated with overlapping dates",
    NotificationKind.BOOKING_APPROVED: "Your booking has been approved",
    NotificationKind.BOOKING_REJECTED: "Your booking has been rejected",
}


def resolve_recipients(db: Session, notification: BookingNotification) -> list[str]:
    if notification.for_admins:
        return list(
            db.scalars(
                select(User.email)
                .where(User.role.in_(ADMIN_ROLES), User.is_active.is_(True))
                .order_by(User.id)
            ).all()
        )

    owner_email = db.scalar(select(User.email).where(User.id == notification.owner_id))
    return [owner_email] if owner_email else []


def deliver_notification(db: Session, payload: dict[str, Any]) -> int:
    notification = BookingNotification.model_validate(payload)
    recipients = resolve_recipients(db, notification)
    subject = SUBJECTS[notification.kind]

    for recipient in recipients:
        logger.info(
            "notification_delivered kind=%s booking_id=%s to=%s subject=%r overlapping=%s",
            notification.kind.value,
            notification.booking_id,
            recipient,
            subject,
            ",".join(str(item.booking_id) for item in notification.overlapping) or "-",
        )
    if not recipients:
        logger.warning(
            "notification_without_recipients kind=%s booking_id=%s",
            notification.kind.value,
            notification.booking_id,
        )
    return len(recipients)


@celery_app.task(name="notifications.deliver")
def deliver_notification_task(payload: dict[str, Any]) -> dict[str, int]:
    db = SessionLocal()
    try:
        return {"delivered": deliver_notification(db=db, payload=payload)}
    finally:
        db.close()
