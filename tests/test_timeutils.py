from datetime import date, datetime, timedelta, timezone

from travel_scheduler.timeutils import (
    ceil_minutes,
    ceil_to_slot,
    format_duration,
    format_minutes,
    intervals_overlap,
    minutes_of,
    to_local_date,
    weekday_horizon,
)


def test_minutes_round_trip_and_malformed_input():
    assert minutes_of("09:30") == 570
    assert minutes_of("24:00") == 1440
    assert minutes_of("") == 0
    assert minutes_of(None) == 0
    assert format_minutes(570) == "09:30"
    assert format_minutes(1440) == "24:00"


def test_local_date_is_not_the_utc_day():
    kst = timezone(timedelta(hours=9))
    # 20:00 UTC on the 2nd is already the 3rd in Seoul
    assert to_local_date("2025-03-02T20:00:00Z", tz=kst) == "2025-03-03"
    assert to_local_date(datetime(2025, 3, 2, 20, 0, tzinfo=timezone.utc), tz=kst) == "2025-03-03"


def test_date_strings_pass_through():
    assert to_local_date("2025-03-03") == "2025-03-03"
    assert to_local_date(date(2025, 3, 3)) == "2025-03-03"
    assert to_local_date(datetime(2025, 3, 3, 23, 59)) == "2025-03-03"


def test_provider_seconds_round_up_to_whole_slots():
    assert ceil_to_slot(0) == 0
    assert ceil_to_slot(1) == 10
    assert ceil_to_slot(600) == 10
    assert ceil_to_slot(601) == 20
    assert ceil_to_slot(42 * 60) == 50
    assert ceil_minutes(61) == 2


def test_half_open_overlap():
    assert intervals_overlap(540, 600, 570, 630)
    assert not intervals_overlap(540, 600, 600, 660)
    assert not intervals_overlap(600, 660, 540, 600)


def test_horizon_skips_weekends():
    thursday = date(2025, 3, 6)
    assert weekday_horizon(thursday) == [thursday, date(2025, 3, 7), date(2025, 3, 10)]
    monday = date(2025, 3, 3)
    assert len(weekday_horizon(monday)) == 5


def test_duration_text():
    assert format_duration(50) == "50 min"
    assert format_duration(60) == "1 h"
    assert format_duration(70) == "1 h 10 min"
