import logging
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from villa_booking.core.config import settings
from villa_booking.core.errors import BookingError, ConflictError
from villa_booking.core.metrics import BOOKING_DECISIONS
from villa_booking.db.models import ACTIVE_STATUSES, Booking, BookingStatus, BookingType, User
from villa_booking.services import booking_engine
from villa_booking.services.booking_engine import BookingDecision, UpdateDecision
from villa_booking.services.date_range import DateRange, overlapping_ids
from villa_booking.services.notification_service import NotificationKind, Notifier, build_notification

logger = logging.getLogger(__name__)

BOOKING_NOT_FOUND_DETAIL = "Booking not found"


def _is_postgresql_session(db: Session) -> bool:
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def _lock_calendar(db: Session) -> None:
    """Serialize overlap-check-plus-write for the shared calendar.

    The advisory lock is transaction scoped and released on commit or
    rollback. Other dialects run without it.
    """
    if _is_postgresql_session(db):
        db.execute(select(func.pg_advisory_xact_lock(settings.booking_lock_key)))


def _record_outcome(outcome: str) -> None:
    BOOKING_DECISIONS.labels(outcome=outcome).inc()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_booking_or_404(db: Session, booking_id: int, for_update: bool = False) -> Booking:
    """Load a booking with its owner.

    ``for_update`` locks the row on PostgreSQL until the transaction ends, so
    a mutation decides on the latest committed status and dates.
    """
    query = select(Booking).options(selectinload(Booking.owner)).where(Booking.id == booking_id)
    if for_update and _is_postgresql_session(db):
        query = query.with_for_update(of=Booking).execution_options(populate_existing=True)
    booking = db.scalar(query)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=BOOKING_NOT_FOUND_DETAIL)
    return booking


def create_booking(
    db: Session,
    actor: User,
    start_date: str | date,
    end_date: str | date,
    notifier: Notifier,
    booking_type: str = BookingType.BOOKING.value,
) -> tuple[Booking, BookingDecision]:
    try:
        _lock_calendar(db)
        decision = booking_engine.evaluate_new_booking(
            db=db,
            actor=actor,
            start=start_date,
            end=end_date,
            booking_type=booking_type,
        )
    except BookingError as exc:
        db.rollback()
        if isinstance(exc, ConflictError):
            _record_outcome("conflict")
        logger.info("booking_rejected_on_create user_id=%s code=%s", actor.id, exc.code)
        raise

    booking = Booking(
        start=decision.date_range.start,
        end=decision.date_range.end,
        type=decision.booking_type,
        status=decision.status,
        added_by=actor.id,
        **decision.fields,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)

    if decision.warning:
        _record_outcome("created_with_warning")
        logger.warning(
            "booking_created_with_overlap booking_id=%s user_id=%s overlapping=%s",
            booking.id,
            actor.id,
            [other.id for other in decision.overlaps],
        )
    else:
        _record_outcome("created")
        logger.info("booking_created booking_id=%s user_id=%s range=%s", booking.id, actor.id, decision.date_range)

    notifier.send(build_notification(NotificationKind.NEW_BOOKING, booking, decision.overlaps))
    return booking, decision


def update_booking(
    db: Session,
    actor: User,
    booking: Booking,
    notifier: Notifier,
    start_date: str | date | None = None,
    end_date: str | date | None = None,
    booking_type: str | None = None,
    new_status: str | None = None,
    is_admin: bool = False,
) -> tuple[Booking, UpdateDecision]:
    try:
        _lock_calendar(db)
        decision = booking_engine.evaluate_update(
            db=db,
            actor=actor,
            booking=booking,
            new_start=start_date,
            new_end=end_date,
            new_type=booking_type,
            new_status=new_status,
            is_admin=is_admin,
        )
    except BookingError as exc:
        db.rollback()
        if isinstance(exc, ConflictError):
            _record_outcome("conflict")
        logger.info("booking_update_rejected booking_id=%s user_id=%s code=%s", booking.id, actor.id, exc.code)
        raise

    for column, value in decision.updated_fields.items():
        setattr(booking, column, value)
    db.commit()
    db.refresh(booking)

    logger.info(
        "booking_updated booking_id=%s user_id=%s fields=%s admin=%s",
        booking.id,
        actor.id,
        sorted(decision.updated_fields),
        is_admin,
    )
    if decision.warning:
        notifier.send(build_notification(NotificationKind.OVERLAP_UPDATE, booking, decision.overlaps))
    return booking, decision


def approve_booking(db: Session, admin: User, booking: Booking, notifier: Notifier) -> Booking:
    try:
        booking_engine.approve(booking, admin)
    except BookingError:
        db.rollback()
        raise
    db.commit()
    db.refresh(booking)
    logger.info("booking_approved booking_id=%s admin_id=%s", booking.id, admin.id)
    notifier.send(build_notification(NotificationKind.BOOKING_APPROVED, booking))
    return booking


def reject_booking(db: Session, admin: User, booking: Booking, notifier: Notifier) -> Booking:
    try:
        booking_engine.reject(booking, admin)
    except BookingError:
        db.rollback()
        raise
    db.commit()
    db.refresh(booking)
    logger.info("booking_rejected booking_id=%s admin_id=%s", booking.id, admin.id)
    notifier.send(build_notification(NotificationKind.BOOKING_REJECTED, booking))
    return booking


def cancel_booking(db: Session, actor: User, booking: Booking) -> Booking:
    try:
        booking_engine.cancel(booking, actor)
    except BookingError:
        db.rollback()
        raise
    db.commit()
    db.refresh(booking)
    logger.info("booking_cancelled booking_id=%s user_id=%s", booking.id, actor.id)
    return booking


def delete_booking(db: Session, admin: User, booking: Booking) -> None:
    booking_id = booking.id
    db.delete(booking)
    db.commit()
    logger.info("booking_deleted booking_id=%s admin_id=%s", booking_id, admin.id)


def active_overlap_flags(db: Session) -> set[int]:
    """Ids of active bookings that intersect at least one other active booking."""
    rows = db.execute(
        select(Booking.id, Booking.start, Booking.end).where(Booking.status.in_(ACTIVE_STATUSES))
    ).all()
    return overlapping_ids((booking_id, DateRange.from_bounds(start, end)) for booking_id, start, end in rows)


def list_admin_reservations(
    db: Session,
    status_filter: str | None = None,
    search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    show_overlaps: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[tuple[Booking, bool]]:
    flagged = active_overlap_flags(db)

    query = select(Booking).join(User, Booking.added_by == User.id).options(selectinload(Booking.owner))
    if status_filter:
        query = query.where(Booking.status == status_filter)
    if search:
        pattern = f"%{_escape_like(search.strip().lower())}%"
        query = query.where(
            or_(
                func.lower(User.firstname).like(pattern, escape="\\"),
                func.lower(User.lastname).like(pattern, escape="\\"),
                func.lower(User.email).like(pattern, escape="\\"),
            )
        )
    if start_date or end_date:
        window = DateRange.from_dates(start_date or date.min, end_date or date.max)
        query = query.where(Booking.start <= window.end, Booking.end >= window.start)
    if show_overlaps:
        query = query.where(Booking.id.in_(flagged))

    bookings = db.scalars(query.order_by(Booking.start.desc(), Booking.id).limit(limit).offset(offset)).all()
    return [(booking, booking.id in flagged) for booking in bookings]


def list_calendar_bookings(db: Session, date_from: date, date_to: date) -> list[Booking]:
    window = DateRange.from_dates(date_from, date_to)
    return booking_engine.find_overlaps(db, window, active_only=False)


def list_user_bookings(
    db: Session,
    user: User,
    status_filter: BookingStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Booking]:
    query = select(Booking).options(selectinload(Booking.owner)).where(Booking.added_by == user.id)
    if status_filter:
        query = query.where(Booking.status == status_filter.value)
    if date_from or date_to:
        window = DateRange.from_dates(date_from or date.min, date_to or date.max)
        query = query.where(Booking.start <= window.end, Booking.end >= window.start)
    return list(db.scalars(query.order_by(Booking.start, Booking.id).limit(limit).offset(offset)).all())
