from __future__ import annotations

from flask import current_app, render_template
from sqlalchemy.exc import SQLAlchemyError

from .. import emailer
from ..app import db
from ..models import EventStudent
from ..shared.results import EventHubError, OperationResult, storage_failure
from ..shared.time import fmt_long_date
from .events import load_event


def send_event_reminders(event_id) -> OperationResult:
    """Email every student registered for the event; failures are per recipient."""

    try:
        event = load_event(event_id)
        students = (
            db.session.query(EventStudent)
            .filter(EventStudent.linked_to(event))
            .order_by(EventStudent.id)
            .all()
        )
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "load registrants"))

    if not students:
        return OperationResult.ok(
            {"sent": 0, "failed": [], "message": "No students registered for this event yet."}
        )

    context = {
        "event": event,
        "when": fmt_long_date(event.event_date),
        "venue": current_app.config["EVENT_VENUE"],
    }
    subject = f"Event Reminder: {event.event_name}"
    sent = 0
    failed: list[dict] = []
    for student in students:
        result = emailer.send(
            student.email,
            subject,
            render_template("email/reminder.txt", registrant=student, **context),
            html=render_template("email/reminder.html", registrant=student, **context),
        )
        if result.get("ok"):
            sent += 1
        else:
            failed.append(
                {
                    "registrant_id": student.id,
                    "name": student.name,
                    "email": student.email,
                    "reason": result.get("detail") or "mail failed",
                }
            )

    current_app.logger.info(
        "[REMINDER] event=%s sent=%s failed=%s", event.id, sent, len(failed)
    )
    message = f"Reminder emails sent to {sent} of {len(students)} students"
    return OperationResult.ok({"sent": sent, "failed": failed, "message": message})
