from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfoNotFoundError

import pytest

from eventhub.shared.time import (
    as_utc,
    day_window,
    fmt_date,
    fmt_dt,
    fmt_long_date,
    local_day,
    to_storage,
)


def test_fmt_dt_no_seconds():
    dt = datetime(2024, 1, 2, 3, 4, 5)
    out = fmt_dt(dt)
    assert out.endswith('03:04')
    assert out.count(':') == 1


def test_certificate_date_formats():
    assert fmt_date(date(2026, 3, 5)) == "5 March 2026"
    assert fmt_long_date(date(2026, 3, 5)) == "Thursday, 5 March 2026"
    assert fmt_date(None) == ""


def test_naive_values_are_treated_as_utc():
    naive = datetime(2026, 3, 5, 6, 0)

    assert as_utc(naive) == datetime(2026, 3, 5, 6, 0, tzinfo=timezone.utc)
    assert to_storage(as_utc(naive)) == naive


def test_local_day_uses_named_zone():
    instant = datetime(2026, 3, 5, 19, 0, tzinfo=timezone.utc)

    assert local_day(instant, "UTC") == date(2026, 3, 5)
    assert local_day(instant, "Asia/Kolkata") == date(2026, 3, 6)


def test_day_window_in_india():
    start, end = day_window(date(2026, 3, 5), "Asia/Kolkata")

    assert start == datetime(2026, 3, 4, 18, 30, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 5, 18, 30, tzinfo=timezone.utc)


def test_day_window_is_24_hours_on_dst_change():
    start, end = day_window(date(2026, 3, 8), "America/New_York")

    assert start == datetime(2026, 3, 8, 5, 0, tzinfo=timezone.utc)
    assert end - start == timedelta(hours=24)


def test_unknown_zone_raises():
    with pytest.raises(ZoneInfoNotFoundError):
        local_day(datetime(2026, 3, 5, tzinfo=timezone.utc), "Mars/Olympus")


def test_local_zone_follows_host_midnight(host_tz):
    host_tz("America/New_York")

    start, end = day_window(date(2026, 3, 5), "local")

    assert start == datetime(2026, 3, 5, 5, 0, tzinfo=timezone.utc)
    assert end - start == timedelta(hours=24)
    assert local_day(datetime(2026, 3, 5, 3, 0, tzinfo=timezone.utc), "local") == date(2026, 3, 4)
    assert local_day(datetime(2026, 3, 5, 3, 0, tzinfo=timezone.utc), None) == date(2026, 3, 4)
