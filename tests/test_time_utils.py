from datetime import datetime, timedelta, timezone

import pytest

from nine_worlds.utils.time_utils import add_months, as_aware, expiry_from_duration, is_valid_duration

NOW = datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("duration, expected", [
    ("7 days", NOW + timedelta(days=7)),
    ("1 day", NOW + timedelta(days=1)),
    (" 30 Days ", NOW + timedelta(days=30)),
    ("1 month", datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc)),
    ("12 months", datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)),
])
def test_expiry_from_duration(duration, expected):
    assert expiry_from_duration(duration, now=NOW) == expected


def test_permanent_when_missing():
    assert expiry_from_duration(None, now=NOW) is None
    assert expiry_from_duration("  ", now=NOW) is None


@pytest.mark.parametrize("bad", ["7", "a week", "-1 days", "1 year"])
def test_rejects_unknown_durations(bad):
    assert not is_valid_duration(bad)
    with pytest.raises(ValueError):
        expiry_from_duration(bad, now=NOW)


def test_add_months_clamps_day():
    assert add_months(datetime(2023, 3, 31), -1) == datetime(2023, 2, 28)


def test_as_aware():
    assert as_aware(datetime(2024, 1, 1)).tzinfo is timezone.utc
    assert as_aware(None) is None
