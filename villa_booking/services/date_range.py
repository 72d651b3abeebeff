"""Inclusive calendar-day ranges used by bookings.

A range is stored as two naive wall-clock instants in the service's
reference time zone: the first instant of the start day (00:00:00) and the
last instant of the end day (23:59:59). Every comparison works on those
instants, so two ranges touching the same calendar day overlap while a range
ending on day N and one starting on day N+1 do not.
"""

from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import TypedDict
from zoneinfo import ZoneInfo

from villa_booking.core.config import settings
from villa_booking.core.errors import ValidationError

DAY_START = time.min
DAY_END = time(23, 59, 59)
SECONDS_PER_DAY = 86400


class DerivedFields(TypedDict):
    start_day: int
    end_day: int
    duration: int
    gap: int


def reference_zone() -> ZoneInfo:
    return ZoneInfo(settings.booking_timezone)


def today() -> date:
    return datetime.now(reference_zone()).date()


def parse_calendar_date(value: str | date | datetime, field: str = "date") -> date:
    """Reduce user input to a calendar date in the reference time zone.

    Accepts ``date``/``datetime`` objects, ``YYYY-MM-DD`` strings and full
    ISO 8601 datetimes. Aware datetimes are converted into the reference zone
    before the time part is dropped.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    else:
        raw = str(value).strip()
        try:
            return date.fromisoformat(raw)
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"Invalid {field}: {value!r}") from None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(reference_zone())
    return parsed.date()


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end.date() < self.start.date():
            raise ValidationError(
                "End date must be on or after start date",
                detail={"start_date": self.start.date().isoformat(), "end_date": self.end.date().isoformat()},
            )

    @classmethod
    def from_dates(cls, start_date: date, end_date: date) -> "DateRange":
        return cls(
            start=datetime.combine(start_date, DAY_START),
            end=datetime.combine(end_date, DAY_END),
        )

    @classmethod
    def parse(cls, start_value, end_value) -> "DateRange":
        return cls.from_dates(
            parse_calendar_date(start_value, field="start_date"),
            parse_calendar_date(end_value, field="end_date"),
        )

    @classmethod
    def from_bounds(cls, start: datetime, end: datetime) -> "DateRange":
        """Rebuild a range from stored instants, re-normalizing the day boundaries."""
        return cls.from_dates(start.date(), end.date())

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    @property
    def start_day(self) -> int:
        return self.start.isoweekday()

    @property
    def end_day(self) -> int:
        return self.end.isoweekday()

    @property
    def duration(self) -> int:
        return int((self.end - self.start).total_seconds() // SECONDS_PER_DAY) + 1

    @property
    def gap(self) -> int:
        return 7 - self.end_day

    def derived_fields(self) -> DerivedFields:
        return {
            "start_day": self.start_day,
            "end_day": self.end_day,
            "duration": self.duration,
            "gap": self.gap,
        }

    def overlaps(self, other: "DateRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def __str__(self) -> str:
        return f"{self.start_date.isoformat()}..{self.end_date.isoformat()}"


def overlapping_ids(items: Iterable[tuple[Hashable, DateRange]]) -> set[Hashable]:
    """Return the keys of every range that intersects at least one other range.

    Ranges are sorted by start. Item ``i`` overlaps an earlier item iff its
    start is not after the largest end seen so far, and overlaps a later item
    iff the next start is not after its own end.
    """
    ordered = sorted(items, key=lambda item: (item[1].start, item[1].end))
    flagged: set[Hashable] = set()
    max_end: datetime | None = None
    for index, (key, current) in enumerate(ordered):
        if max_end is not None and current.start <= max_end:
            flagged.add(key)
        elif index + 1 < len(ordered) and current.overlaps(ordered[index + 1][1]):
            flagged.add(key)
        if max_end is None or current.end > max_end:
            max_end = current.end
    return flagged
