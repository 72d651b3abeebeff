from datetime import date, datetime

import pytest

from villa_booking.core.errors import ValidationError
from villa_booking.services.date_range import DateRange, overlapping_ids, parse_calendar_date


def test_weekday_duration_and_gap_for_monday_to_friday():
    stay = DateRange.parse("2025-03-10", "2025-03-14")

    assert stay.derived_fields() == {"start_day": 1, "end_day": 5, "duration": 5, "gap": 2}


def test_range_is_normalized_to_day_boundaries():
    stay = DateRange.parse("2025-03-10T15:30:00", "2025-03-11T08:00:00")

    assert stay.start == datetime(2025, 3, 10, 0, 0, 0)
    assert stay.end == datetime(2025, 3, 11, 23, 59, 59)


def test_single_day_range_lasts_one_day():
    stay = DateRange.parse("2025-03-10", "2025-03-10")

    assert stay.duration == 1
    assert stay.start_day == stay.end_day == 1


def test_gap_is_zero_when_range_ends_on_sunday():
    stay = DateRange.parse("2025-03-10", "2025-03-16")

    assert stay.end_day == 7
    assert stay.gap == 0
    assert stay.duration == 7


@pytest.mark.parametrize(
    ("start", "end"),
    [
        ("2024-02-27", "2024-03-02"),
        ("2025-12-29", "2026-01-04"),
        ("2025-03-29", "2025-04-01"),
    ],
)
def test_duration_counts_calendar_days_inclusively(start, end):
    stay = DateRange.parse(start, end)

    assert stay.duration == (date.fromisoformat(end) - date.fromisoformat(start)).days + 1
    assert stay.gap == 7 - stay.end_day
    assert 1 <= stay.start_day <= 7
    assert 1 <= stay.end_day <= 7


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationError):
        DateRange.parse("2025-03-14", "2025-03-10")


def test_unparseable_date_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        DateRange.parse("next tuesday", "2025-03-10")

    assert "start_date" in exc_info.value.message


def test_aware_datetime_is_converted_to_reference_zone():
    # 23:30 UTC on the 9th is already the 10th in Europe/Paris.
    assert parse_calendar_date("2025-03-09T23:30:00+00:00") == date(2025, 3, 10)


def test_adjacent_days_do_not_overlap():
    first = DateRange.parse("2025-03-10", "2025-03-14")
    second = DateRange.parse("2025-03-15", "2025-03-18")

    assert not first.overlaps(second)
    assert not second.overlaps(first)


def test_shared_calendar_day_overlaps():
    first = DateRange.parse("2025-03-10", "2025-03-14")
    second = DateRange.parse("2025-03-14", "2025-03-18")

    assert first.overlaps(second)
    assert second.overlaps(first)


def test_overlapping_ids_flags_every_member_of_a_chain():
    ranges = [
        ("a", DateRange.parse("2025-03-01", "2025-03-10")),
        ("b", DateRange.parse("2025-03-03", "2025-03-04")),
        ("c", DateRange.parse("2025-03-10", "2025-03-12")),
        ("d", DateRange.parse("2025-03-20", "2025-03-22")),
        ("e", DateRange.parse("2025-03-23", "2025-03-23")),
    ]

    assert overlapping_ids(ranges) == {"a", "b", "c"}


def test_overlapping_ids_matches_pairwise_check():
    ranges = [
        (1, DateRange.parse("2025-05-01", "2025-05-03")),
        (2, DateRange.parse("2025-05-02", "2025-05-02")),
        (3, DateRange.parse("2025-05-04", "2025-05-06")),
        (4, DateRange.parse("2025-04-20", "2025-05-10")),
        (5, DateRange.parse("2025-06-01", "2025-06-01")),
    ]
    expected = {
        key
        for key, current in ranges
        if any(other_key != key and current.overlaps(other) for other_key, other in ranges)
    }

    assert overlapping_ids(ranges) == expected == {1, 2, 3, 4}
