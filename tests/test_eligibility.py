from datetime import date, datetime, timedelta, timezone

import pytest

from eventhub.services.eligibility import (
    eligibility_window,
    find_eligible_registrants,
    select_eligible_registrants,
)

from conftest import add_attendance, make_event, make_student, utc


pytestmark = pytest.mark.smoke


def _startup_school():
    event = make_event("Startup School", date(2026, 3, 5))
    on_day_a = make_student("a", event=event)
    on_day_b = make_student("b", event=event)
    day_before = make_student("c", event=event)
    # 11:30 and 17:00 IST on the event day, 11:30 IST the day before
    add_attendance(on_day_a, utc(2026, 3, 5, 6, 0))
    add_attendance(on_day_b, utc(2026, 3, 5, 11, 30))
    add_attendance(day_before, utc(2026, 3, 4, 6, 0))
    return event, on_day_a, on_day_b, day_before


def test_startup_school_scenario(app):
    event, on_day_a, on_day_b, _ = _startup_school()

    result = select_eligible_registrants(event.id)

    assert result.success
    assert [r["id"] for r in result.data["registrants"]] == [on_day_a.id, on_day_b.id]


def test_other_events_students_excluded(app):
    event, on_day_a, on_day_b, _ = _startup_school()
    other = make_event("Hack Night", date(2026, 3, 5))
    outsider = make_student("x", event=other)
    add_attendance(outsider, utc(2026, 3, 5, 6, 0))

    eligible = find_eligible_registrants(event)

    assert outsider not in eligible
    assert {s.id for s in eligible} == {on_day_a.id, on_day_b.id}


def test_name_linked_student_without_event_id_is_included(app):
    event = make_event("Startup School", date(2026, 3, 5))
    legacy = make_student("legacy", event_name="Startup School")
    add_attendance(legacy, utc(2026, 3, 5, 6, 0))

    assert find_eligible_registrants(event) == [legacy]


def test_id_link_wins_over_matching_name(app):
    event = make_event("Startup School", date(2026, 3, 5))
    other = make_event("Other", date(2026, 3, 5))
    student = make_student("s", event=other, event_name="Startup School")
    add_attendance(student, utc(2026, 3, 5, 6, 0))

    assert find_eligible_registrants(event) == []


def test_event_without_attendees_is_empty_success(app):
    event = make_event()
    make_student("nobody", event=event)

    result = select_eligible_registrants(event.id)

    assert result.success
    assert result.data["registrants"] == []


def test_unknown_event_is_not_found(app):
    result = select_eligible_registrants(9999)

    assert not result.success
    assert result.error.code == "NotFound"


def test_window_is_midnight_to_midnight_in_configured_zone(app):
    event = make_event(day=date(2026, 3, 5))

    start, end = eligibility_window(event)

    assert start == datetime(2026, 3, 4, 18, 30, tzinfo=timezone.utc)
    assert end - start == timedelta(hours=24)


def test_window_zone_decides_late_evening_scans(app):
    event = make_event(day=date(2026, 3, 5))
    late = make_student("late", event=event)
    # 20:00 UTC on the 5th is 01:30 IST on the 6th
    add_attendance(late, utc(2026, 3, 5, 20, 0))

    assert find_eligible_registrants(event) == []

    app.config["ELIGIBILITY_TIMEZONE"] = "UTC"
    assert find_eligible_registrants(event) == [late]


def test_host_local_window_disagrees_with_attendance_zone(app, host_tz):
    host_tz("America/New_York")
    app.config["ELIGIBILITY_TIMEZONE"] = "local"
    event = make_event(day=date(2026, 3, 5))
    morning_ist = make_student("ist", event=event)
    afternoon_ny = make_student("ny", event=event)
    # 08:30 IST on the 5th is 22:00 EST on the 4th
    add_attendance(morning_ist, utc(2026, 3, 5, 3, 0))
    # 15:00 EST on the 5th is 01:30 IST on the 6th
    add_attendance(afternoon_ny, utc(2026, 3, 5, 20, 0))

    start, _ = eligibility_window(event)
    assert start == datetime(2026, 3, 5, 5, 0, tzinfo=timezone.utc)
    assert find_eligible_registrants(event) == [afternoon_ny]

    app.config["ELIGIBILITY_TIMEZONE"] = "Asia/Kolkata"
    assert find_eligible_registrants(event) == [morning_ist]
