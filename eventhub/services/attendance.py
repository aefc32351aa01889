from __future__ import annotations

from datetime import date, datetime
from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..app import db
from ..models import AttendanceEntry, Registrant
from ..shared.results import (
    ALREADY_RECORDED,
    EventHubError,
    OperationResult,
    storage_failure,
)
from ..shared.time import as_utc, local_day, now_utc, to_storage
from .identity import find_registrant_for_token

MARKED = "marked"
ALREADY_MARKED = "already_marked"

_MESSAGES = {
    MARKED: "Attendance marked successfully",
    ALREADY_MARKED: "Attendance already marked for today",
}


def attendance_timezone() -> str:
    return current_app.config["ATTENDANCE_TIMEZONE"]


def _has_entry_on(registrant: Registrant, day: date, tz_name: str) -> bool:
    return any(
        local_day(entry.recorded_at, tz_name) == day for entry in registrant.attendance
    )


def record_attendance(registrant: Registrant, now: datetime | None = None) -> str:
    """Append today's attendance entry unless one exists; return the status.

    The unique (registrant, day_key, day_zone) constraint settles concurrent
    scans: the losing insert is rolled back and reported as already marked.
    Earlier rows are compared by their absolute instant in the current zone,
    so changing the attendance timezone does not corrupt the daily check.
    """

    tz_name = attendance_timezone()
    instant = as_utc(now) if now else now_utc()
    today = local_day(instant, tz_name)
    if _has_entry_on(registrant, today, tz_name):
        return ALREADY_MARKED

    registrant.attendance.append(
        AttendanceEntry(
            recorded_at=to_storage(instant),
            present=True,
            day_key=today,
            day_zone=tz_name,
        )
    )
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info(
            "[SCAN] concurrent mark registrant=%s day=%s", registrant.id, today
        )
        return ALREADY_MARKED
    return MARKED


def mark_attendance(
    token: str | None, operator: Any, now: datetime | None = None
) -> OperationResult:
    """Resolve a scanned badge and mark the holder present for today."""

    try:
        registrant = find_registrant_for_token(token, operator)
        status = record_attendance(registrant, now)
    except EventHubError as exc:
        current_app.logger.info("[SCAN] token=%s result=%s", token, exc.code)
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("[SCAN] token=%s storage error", token)
        return OperationResult.fail(storage_failure(exc, "mark attendance"))

    current_app.logger.info(
        "[SCAN] registrant=%s kind=%s result=%s", registrant.id, registrant.kind, status
    )
    data = {
        "status": status,
        "message": _MESSAGES[status],
        "registrant": registrant.summary(),
    }
    if status == ALREADY_MARKED:
        data["code"] = ALREADY_RECORDED
    return OperationResult.ok(data)
