from datetime import UTC, date, datetime, timedelta

ICS_STATUS = {
    "pending": "TENTATIVE",
    "approved": "CONFIRMED",
    "cancelled": "CANCELLED",
}


def _format_ics_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def _format_ics_date(value: date) -> str:
    return value.strftime("%Y%m%d")


def _escape_ics_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", r"\;")
        .replace(",", r"\,")
        .replace("\r\n", r"\n")
        .replace("\n", r"\n")
    )


def build_booking_calendar_ics(
    booking_id: int,
    start_date: date,
    end_date: date,
    owner_name: str,
    booking_status: str,
    duration: int,
) -> str:
    """Single all-day event; DTEND is exclusive, so it is the day after the stay."""
    summary = _escape_ics_text(f"Stay - {owner_name}")
    description = _escape_ics_text(
        f"Booking #{booking_id}\nGuest: {owner_name}\nDuration: {duration} day(s)\nStatus: {booking_status}"
    )

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Villa Booking//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:booking-{booking_id}@villa-booking.local",
        f"DTSTAMP:{_format_ics_datetime(datetime.now(UTC))}",
        f"DTSTART;VALUE=DATE:{_format_ics_date(start_date)}",
        f"DTEND;VALUE=DATE:{_format_ics_date(end_date + timedelta(days=1))}",
        f"SUMMARY:{summary}",
        f"DESCRIPTION:{description}",
        f"STATUS:{ICS_STATUS.get(booking_status, 'TENTATIVE')}",
        "TRANSP:OPAQUE",
        "END:VEVENT",
        "END:VCALENDAR",
        "",
    ]
    return "\r\n".join(lines)
