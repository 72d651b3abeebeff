"""Overlap rules and status transitions for bookings.

Nothing here commits: functions either return a decision for the caller to
persist or mutate a loaded ``Booking`` in place. Permission checks belong to
``villa_booking.core.access``; this module trusts that the call is allowed.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from villa_booking.core.errors import ConflictError, InvalidStateError, ValidationError
from villa_booking.db.models import ACTIVE_STATUSES, Booking, BookingStatus, BookingType, User
from villa_booking.services.date_range import DateRange, DerivedFields, parse_calendar_date

SELF_OVERLAP_DETAIL = "Cannot create a booking overlapping your own existing booking"

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING.value: frozenset({BookingStatus.APPROVED.value, BookingStatus.CANCELLED.value}),
    BookingStatus.APPROVED.value: frozenset({BookingStatus.CANCELLED.value}),
    BookingStatus.CANCELLED.value: frozenset(),
}


@dataclass
class BookingDecision:
    date_range: DateRange
    fields: DerivedFields
    status: str
    booking_type: str
    overlaps: list[Booking] = field(default_factory=list)
    conflicting_owners: list[str] = field(default_factory=list)

    @property
    def warning(self) -> bool:
        return bool(self.overlaps)

    @property
    def message(self) -> str:
        return overlap_message(self.conflicting_owners)


@dataclass
class UpdateDecision:
    updated_fields: dict[str, Any]
    overlaps: list[Booking] = field(default_factory=list)
    conflicting_owners: list[str] = field(default_factory=list)

    @property
    def warning(self) -> bool:
        return bool(self.overlaps)

    @property
    def message(self) -> str:
        return overlap_message(self.conflicting_owners)


def derive_fields(start: datetime, end: datetime) -> DerivedFields:
    return DateRange.from_bounds(start, end).derived_fields()


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def overlap_message(owner_names: list[str]) -> str:
    if not owner_names:
        return "Booking saved and awaiting admin approval."
    return (
        f"This booking overlaps with existing bookings by {', '.join(owner_names)}. "
        "It stays pending until an admin reviews it."
    )


def find_overlaps(
    db: Session,
    candidate: DateRange,
    exclude_booking_id: int | None = None,
    active_only: bool = True,
) -> list[Booking]:
    """Bookings whose stored range intersects ``candidate``.

    Cancelled bookings are never returned, whichever ``active_only`` is.
    """
    query = (
        select(Booking)
        .options(selectinload(Booking.owner))
        .where(Booking.start <= candidate.end, Booking.end >= candidate.start)
    )
    if active_only:
        query = query.where(Booking.status.in_(ACTIVE_STATUSES))
    else:
        query = query.where(Booking.status != BookingStatus.CANCELLED.value)
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    return list(db.scalars(query.order_by(Booking.start, Booking.id)).all())


def _validate_type(booking_type: str) -> str:
    if booking_type != BookingType.BOOKING.value:
        raise ValidationError(
            f"Unsupported booking type: {booking_type!r}",
            detail={"type": booking_type, "allowed": [item.value for item in BookingType]},
        )
    return booking_type


def _owner_names(overlaps: list[Booking]) -> list[str]:
    # One entry per owner; two owners may share a display name.
    names: dict[int, str] = {}
    for booking in overlaps:
        names.setdefault(booking.added_by, booking.owner_name)
    return list(names.values())


def _raise_on_self_overlap(overlaps: list[Booking], owner_id: int) -> None:
    own = [booking.id for booking in overlaps if booking.added_by == owner_id]
    if own:
        raise ConflictError(SELF_OVERLAP_DETAIL, detail={"message": SELF_OVERLAP_DETAIL, "booking_ids": own})


def evaluate_new_booking(
    db: Session,
    actor: User,
    start: str | date | datetime,
    end: str | date | datetime,
    booking_type: str = BookingType.BOOKING.value,
) -> BookingDecision:
    date_range = DateRange.parse(start, end)
    _validate_type(booking_type)

    overlaps = find_overlaps(db, date_range)
    _raise_on_self_overlap(overlaps, actor.id)

    # New bookings always wait for an admin, with or without cross-owner overlaps.
    return BookingDecision(
        date_range=date_range,
        fields=date_range.derived_fields(),
        status=BookingStatus.PENDING.value,
        booking_type=booking_type,
        overlaps=overlaps,
        conflicting_owners=_owner_names(overlaps),
    )


def evaluate_update(
    db: Session,
    actor: User,
    booking: Booking,
    new_start: str | date | datetime | None = None,
    new_end: str | date | datetime | None = None,
    new_type: str | None = None,
    new_status: str | None = None,
    is_admin: bool = False,
) -> UpdateDecision:
    updated: dict[str, Any] = {}
    overlaps: list[Booking] = []

    if new_type is not None:
        updated["type"] = _validate_type(new_type)

    if new_start is not None or new_end is not None:
        start_date = parse_calendar_date(new_start, "start_date") if new_start is not None else booking.start.date()
        end_date = parse_calendar_date(new_end, "end_date") if new_end is not None else booking.end.date()
        date_range = DateRange.from_dates(start_date, end_date)

        overlaps = find_overlaps(db, date_range, exclude_booking_id=booking.id)
        # Same-owner overlap has no admin override.
        _raise_on_self_overlap(overlaps, booking.added_by)

        updated["start"] = date_range.start
        updated["end"] = date_range.end
        updated.update(date_range.derived_fields())

    if is_admin:
        if new_status is not None and new_status != booking.status:
            if new_status not in ALLOWED_TRANSITIONS:
                raise ValidationError(
                    f"Unknown booking status: {new_status!r}",
                    detail={"status": new_status, "allowed": list(ALLOWED_TRANSITIONS)},
                )
            if not can_transition(booking.status, new_status):
                raise InvalidStateError(f"Cannot change booking status from {booking.status} to {new_status}")
            updated["status"] = new_status
            updated["validated_by"] = actor.id
    else:
        updated["status"] = BookingStatus.PENDING.value

    return UpdateDecision(
        updated_fields=updated,
        overlaps=overlaps,
        conflicting_owners=_owner_names(overlaps),
    )


def approve(booking: Booking, acting_admin: User) -> Booking:
    if booking.status != BookingStatus.PENDING.value:
        raise InvalidStateError("Only pending bookings can be approved")
    booking.status = BookingStatus.APPROVED.value
    booking.validated_by = acting_admin.id
    return booking


def reject(booking: Booking, acting_admin: User) -> Booking:
    if booking.status != BookingStatus.PENDING.value:
        raise InvalidStateError("Only pending bookings can be rejected")
    booking.status = BookingStatus.CANCELLED.value
    booking.validated_by = acting_admin.id
    return booking


def cancel(booking: Booking, actor: User) -> Booking:
    if booking.status not in ACTIVE_STATUSES:
        raise InvalidStateError("Booking is already cancelled")
    booking.status = BookingStatus.CANCELLED.value
    return booking
