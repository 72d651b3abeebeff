from datetime import datetime

from pydantic import BaseModel, Field

from villa_booking.db.models.booking import BookingStatus, BookingType


class BookingCreateRequest(BaseModel):
    start_date: str = Field(min_length=1, max_length=40)
    end_date: str = Field(min_length=1, max_length=40)
    type: str = BookingType.BOOKING.value


class BookingUpdateRequest(BaseModel):
    start_date: str | None = Field(default=None, min_length=1, max_length=40)
    end_date: str | None = Field(default=None, min_length=1, max_length=40)
    type: str | None = None


class AdminBookingUpdateRequest(BookingUpdateRequest):
    status: BookingStatus | None = None


class BookingResponse(BaseModel):
    id: int
    start: datetime
    end: datetime
    start_day: int
    end_day: int
    duration: int
    gap: int
    type: str
    status: str
    added_by: int
    validated_by: int | None
    owner_name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingMutationResponse(BookingResponse):
    overlap_warning: bool = False
    message: str = ""
    conflicting_owners: list[str] = Field(default_factory=list)

    @classmethod
    def from_decision(cls, booking, decision, default_message: str | None = None) -> "BookingMutationResponse":
        message = decision.message
        if not decision.warning and default_message is not None:
            message = default_message
        return cls(
            **BookingResponse.model_validate(booking).model_dump(),
            overlap_warning=decision.warning,
            message=message,
            conflicting_owners=decision.conflicting_owners,
        )


class CalendarBookingResponse(BookingResponse):
    owner_color: str | None = None


class AdminReservationResponse(BookingResponse):
    owner_email: str
    has_overlap: bool = False
