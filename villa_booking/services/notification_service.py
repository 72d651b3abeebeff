import logging
import threading
from abc import ABC, abstractmethod
from datetime import date
from enum import Enum

from kombu.exceptions import OperationalError as BrokerError
from pydantic import BaseModel, Field

from villa_booking.core.config import settings
from villa_booking.core.metrics import NOTIFICATIONS_SENT
from villa_booking.db.models import Booking

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    NEW_BOOKING = "new_booking"
    OVERLAP_UPDATE = "overlap_update"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"


ADMIN_KINDS = frozenset({NotificationKind.NEW_BOOKING, NotificationKind.OVERLAP_UPDATE})


class OverlapSummary(BaseModel):
    booking_id: int
    owner_name: str
    start_date: date
    end_date: date
    status: str


class BookingNotification(BaseModel):
    kind: NotificationKind
    booking_id: int
    owner_id: int
    owner_name: str
    start_date: date
    end_date: date
    status: str
    overlapping: list[OverlapSummary] = Field(default_factory=list)

    @property
    def for_admins(self) -> bool:
        return self.kind in ADMIN_KINDS


def build_notification(
    kind: NotificationKind,
    booking: Booking,
    overlapping: list[Booking] | None = None,
) -> BookingNotification:
    return BookingNotification(
        kind=kind,
        booking_id=booking.id,
        owner_id=booking.added_by,
        owner_name=booking.owner_name,
        start_date=booking.start.date(),
        end_date=booking.end.date(),
        status=booking.status,
        overlapping=[
            OverlapSummary(
                booking_id=other.id,
                owner_name=other.owner_name,
                start_date=other.start.date(),
                end_date=other.end.date(),
                status=other.status,
            )
            for other in overlapping or []
        ],
    )


class Notifier(ABC):
    name = "abstract"

    @abstractmethod
    def send(self, notification: BookingNotification) -> None:
        raise NotImplementedError

    def reset(self) -> None:
        return None


class InMemoryNotifier(Notifier):
    name = "memory"

    def __init__(self) -> None:
        self._sent: list[BookingNotification] = []
        self._lock = threading.Lock()

    @property
    def sent(self) -> list[BookingNotification]:
        with self._lock:
            return list(self._sent)

    def send(self, notification: BookingNotification) -> None:
        with self._lock:
            self._sent.append(notification)
        NOTIFICATIONS_SENT.labels(kind=notification.kind.value, backend=self.name).inc()

    def reset(self) -> None:
        with self._lock:
            self._sent.clear()


class LoggingNotifier(Notifier):
    name = "log"

    def send(self, notification: BookingNotification) -> None:
        logger.info(
            "notification kind=%s booking_id=%s owner_id=%s overlapping=%s",
            notification.kind.value,
            notification.booking_id,
            notification.owner_id,
            len(notification.overlapping),
        )
        NOTIFICATIONS_SENT.labels(kind=notification.kind.value, backend=self.name).inc()


class CeleryNotifier(Notifier):
    name = "celery"

    def send(self, notification: BookingNotification) -> None:
        from villa_booking.tasks.notifications import deliver_notification_task

        deliver_notification_task.delay(notification.model_dump(mode="json"))
        NOTIFICATIONS_SENT.labels(kind=notification.kind.value, backend=self.name).inc()


class FallbackNotifier(Notifier):
    def __init__(self, primary: Notifier, fallback: Notifier) -> None:
        self._primary = primary
        self._fallback = fallback
        self.name = primary.name

    def send(self, notification: BookingNotification) -> None:
        try:
            self._primary.send(notification)
        except BrokerError:
            logger.warning(
                "notifier_fallback kind=%s booking_id=%s backend=%s",
                notification.kind.value,
                notification.booking_id,
                self._fallback.name,
            )
            self._fallback.send(notification)

    def reset(self) -> None:
        self._primary.reset()
        self._fallback.reset()


def _build_notifier() -> Notifier:
    backend = settings.notifier_backend.strip().lower()
    if backend == "memory":
        return InMemoryNotifier()
    if backend == "celery":
        return FallbackNotifier(primary=CeleryNotifier(), fallback=LoggingNotifier())
    return LoggingNotifier()


notifier: Notifier = _build_notifier()


def get_notifier() -> Notifier:
    return notifier
