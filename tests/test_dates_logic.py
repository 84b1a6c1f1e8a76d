from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from meeting_planner.logic.dates import add_days, due_date_urgency, planner_zone, to_date


def test_to_date_accepts_dates_datetimes_and_strings():
    assert to_date(date(2025, 10, 1)) == date(2025, 10, 1)
    assert to_date(datetime(2025, 10, 1, 23, 30, tzinfo=UTC)) == date(2025, 10, 1)
    assert to_date("2025-10-01") == date(2025, 10, 1)
    assert to_date("2025-10-01T08:00:00+00:00") == date(2025, 10, 1)
    assert to_date(None) is None
    assert to_date("  ") is None


def test_to_date_converts_timestamps_into_planner_zone():
    late_evening = datetime(2025, 10, 2, 3, 0, tzinfo=UTC)

    assert to_date(late_evening) == date(2025, 10, 2)
    assert to_date(late_evening, ZoneInfo("America/Chicago")) == date(2025, 10, 1)
    assert to_date(datetime(2025, 10, 2, 3, 0), ZoneInfo("America/Chicago")) == date(2025, 10, 1)


def test_planner_zone_falls_back_to_utc():
    assert planner_zone("Europe/London") == ZoneInfo("Europe/London")
    assert planner_zone("") == ZoneInfo("UTC")
    assert planner_zone("Not/AZone") is UTC


def test_to_date_rejects_garbage():
    with pytest.raises(ValueError):
        to_date("not-a-date")


def test_add_days_crosses_month_and_year_boundaries():
    assert add_days(date(2025, 10, 1), -80) == date(2025, 7, 13)
    assert add_days(date(2025, 12, 30), 3) == date(2026, 1, 2)


@pytest.mark.parametrize(
    ("due", "expected"),
    [
        (date(2025, 9, 30), "overdue"),
        (date(2025, 10, 1), "due_today"),
        (date(2025, 10, 2), "upcoming"),
        (None, "none"),
    ],
)
def test_due_date_urgency(due, expected):
    assert due_date_urgency(due, on=date(2025, 10, 1)) == expected
