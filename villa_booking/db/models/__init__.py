from villa_booking.db.models.booking import ACTIVE_STATUSES, Booking, BookingStatus, BookingType
from villa_booking.db.models.user import ADMIN_ROLES, User, UserRole

__all__ = [
    "User",
    "UserRole",
    "ADMIN_ROLES",
    "Booking",
    "BookingStatus",
    "BookingType",
    "ACTIVE_STATUSES",
]
