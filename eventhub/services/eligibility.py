from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..models import AttendanceEntry, Event, EventStudent
from ..shared.results import EventHubError, OperationResult, storage_failure
from ..shared.time import day_window, to_storage
from .events import load_event


def eligibility_timezone() -> str:
    return current_app.config["ELIGIBILITY_TIMEZONE"]


def eligibility_window(event: Event) -> tuple[datetime, datetime]:
    """Fixed 24h span from midnight of the event day, as aware UTC datetimes."""
    return day_window(event.event_date, eligibility_timezone())


def find_eligible_registrants(event: Event) -> list[EventStudent]:
    """Students linked to ``event`` with attendance inside its window."""

    start, end = eligibility_window(event)
    return (
        db.session.query(EventStudent)
        .filter(EventStudent.linked_to(event))
        .filter(
            EventStudent.attendance.any(
                (AttendanceEntry.recorded_at >= to_storage(start))
                & (AttendanceEntry.recorded_at < to_storage(end))
            )
        )
        .order_by(EventStudent.id)
        .all()
    )


def select_eligible_registrants(event_id) -> OperationResult:
    try:
        event = load_event(event_id)
        registrants = find_eligible_registrants(event)
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        current_app.logger.exception("[ELIGIBILITY] event=%s storage error", event_id)
        return OperationResult.fail(storage_failure(exc, "select eligible registrants"))

    start, end = eligibility_window(event)
    return OperationResult.ok(
        {
            "event": event.to_dict(),
            "window": {"start": start.isoformat(), "end": end.isoformat()},
            "registrants": [
                {**r.summary(), "email": r.email} for r in registrants
            ],
        }
    )
