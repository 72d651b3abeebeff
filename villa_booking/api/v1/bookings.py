from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from villa_booking.api.deps import forbidden, get_current_user
from villa_booking.api.pagination import LimitParam, OffsetParam
from villa_booking.core.access import AccessControl, get_access_control
from villa_booking.db.models import BookingStatus, User
from villa_booking.db.session import get_db
from villa_booking.schemas.booking import (
    BookingCreateRequest,
    BookingMutationResponse,
    BookingResponse,
    BookingUpdateRequest,
    CalendarBookingResponse,
)
from villa_booking.services import booking_service
from villa_booking.services.calendar_service import build_booking_calendar_ics
from villa_booking.services.date_range import today
from villa_booking.services.notification_service import Notifier, get_notifier

router = APIRouter(prefix="/bookings", tags=["bookings"])

CALENDAR_DEFAULT_DAYS = 90


@router.post("", response_model=BookingMutationResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreateRequest,
    current_user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db),
) -> BookingMutationResponse:
    booking, decision = booking_service.create_booking(
        db=db,
        actor=current_user,
        start_date=payload.start_date,
        end_date=payload.end_date,
        booking_type=payload.type,
        notifier=notifier,
    )
    return BookingMutationResponse.from_decision(booking, decision)


@router.get("", response_model=list[CalendarBookingResponse], status_code=status.HTTP_200_OK)
def list_calendar(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[CalendarBookingResponse]:
    window_start = date_from or today()
    window_end = date_to or window_start + timedelta(days=CALENDAR_DEFAULT_DAYS)
    bookings = booking_service.list_calendar_bookings(db=db, date_from=window_start, date_to=window_end)
    return [
        CalendarBookingResponse(
            **BookingResponse.model_validate(booking).model_dump(),
            owner_color=booking.owner.color_preference if booking.owner else None,
        )
        for booking in bookings
    ]


@router.get("/me", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
def list_my_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BookingResponse]:
    bookings = booking_service.list_user_bookings(
        db=db,
        user=current_user,
        status_filter=status_filter,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return [BookingResponse.model_validate(booking) for booking in bookings]


@router.patch("/{booking_id}", response_model=BookingMutationResponse, status_code=status.HTTP_200_OK)
def update_my_booking(
    booking_id: int,
    payload: BookingUpdateRequest,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db),
) -> BookingMutationResponse:
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id, for_update=True)
    # Self-service edits: owner only, and only while the booking is pending.
    if not (access.is_owner(current_user, booking) and access.can_modify(current_user, booking)):
        raise forbidden()

    updated, decision = booking_service.update_booking(
        db=db,
        actor=current_user,
        booking=booking,
        notifier=notifier,
        start_date=payload.start_date,
        end_date=payload.end_date,
        booking_type=payload.type,
        is_admin=False,
    )
    return BookingMutationResponse.from_decision(updated, decision, default_message="Booking updated.")


@router.patch("/{booking_id}/cancel", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def cancel_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id, for_update=True)
    if not access.can_cancel(current_user, booking):
        raise forbidden()

    booking = booking_service.cancel_booking(db=db, actor=current_user, booking=booking)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/calendar.ics", status_code=status.HTTP_200_OK)
def download_booking_calendar_file(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
    db: Session = Depends(get_db),
) -> Response:
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id)
    if not access.can_view(current_user, booking):
        raise forbidden()

    ics_content = build_booking_calendar_ics(
        booking_id=booking.id,
        start_date=booking.start.date(),
        end_date=booking.end.date(),
        owner_name=booking.owner_name,
        booking_status=booking.status,
        duration=booking.duration,
    )
    return Response(
        content=ics_content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="booking-{booking.id}.ics"'},
    )


@router.get("/{booking_id}", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def get_booking_by_id(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    access: AccessControl = Depends(get_access_control),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id)
    if not access.can_view(current_user, booking):
        raise forbidden()
    return BookingResponse.model_validate(booking)
