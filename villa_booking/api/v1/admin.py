from datetime import date

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from villa_booking.api.deps import forbidden, require_admin
from villa_booking.api.pagination import LimitParam, OffsetParam
from villa_booking.core.access import AccessControl, get_access_control
from villa_booking.db.models import BookingStatus, User
from villa_booking.db.session import get_db
from villa_booking.schemas.booking import (
    AdminBookingUpdateRequest,
    AdminReservationResponse,
    BookingMutationResponse,
    BookingResponse,
)
from villa_booking.services import booking_service
from villa_booking.services.notification_service import Notifier, get_notifier

router = APIRouter(prefix="/admin/reservations", tags=["admin"])


@router.get("", response_model=list[AdminReservationResponse], status_code=status.HTTP_200_OK)
def list_reservations(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=100),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    show_overlaps: bool = Query(default=False),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[AdminReservationResponse]:
    rows = booking_service.list_admin_reservations(
        db=db,
        status_filter=status_filter.value if status_filter else None,
        search=search,
        start_date=start_date,
        end_date=end_date,
        show_overlaps=show_overlaps,
        limit=limit,
        offset=offset,
    )
    return [
        AdminReservationResponse(
            **BookingResponse.model_validate(booking).model_dump(),
            owner_email=booking.owner.email,
            has_overlap=has_overlap,
        )
        for booking, has_overlap in rows
    ]


@router.put("/{booking_id}", response_model=BookingMutationResponse, status_code=status.HTTP_200_OK)
def update_reservation(
    booking_id: int,
    payload: AdminBookingUpdateRequest,
    current_user: User = Depends(require_admin),
    access: AccessControl = Depends(get_access_control),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db),
) -> BookingMutationResponse:
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id, for_update=True)
    if not access.can_modify(current_user, booking):
        raise forbidden()

    updated, decision = booking_service.update_booking(
        db=db,
        actor=current_user,
        booking=booking,
        notifier=notifier,
        start_date=payload.start_date,
        end_date=payload.end_date,
        booking_type=payload.type,
        new_status=payload.status.value if payload.status else None,
        is_admin=True,
    )
    return BookingMutationResponse.from_decision(updated, decision, default_message="Reservation updated.")


@router.post("/{booking_id}/approve", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def approve_reservation(
    booking_id: int,
    current_user: User = Depends(require_admin),
    access: AccessControl = Depends(get_access_control),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db),
) -> BookingResponse:
    if not access.can_approve(current_user):
        raise forbidden()
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id, for_update=True)
    booking = booking_service.approve_booking(db=db, admin=current_user, booking=booking, notifier=notifier)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/reject", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def reject_reservation(
    booking_id: int,
    current_user: User = Depends(require_admin),
    access: AccessControl = Depends(get_access_control),
    notifier: Notifier = Depends(get_notifier),
    db: Session = Depends(get_db),
) -> BookingResponse:
    if not access.can_approve(current_user):
        raise forbidden()
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id, for_update=True)
    booking = booking_service.reject_booking(db=db, admin=current_user, booking=booking, notifier=notifier)
    return BookingResponse.model_validate(booking)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reservation(
    booking_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    booking = booking_service.get_booking_or_404(db=db, booking_id=booking_id, for_update=True)
    booking_service.delete_booking(db=db, admin=current_user, booking=booking)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
