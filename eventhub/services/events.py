from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..app import db
from ..models import CertificateDelivery, Event, EventStudent, Registrant
from ..shared.posters import render_event_poster
from ..shared.results import (
    EventHubError,
    NotFound,
    OperationResult,
    ValidationFailure,
    storage_failure,
)


def load_event(event_id) -> Event:
    try:
        key = int(event_id)
    except (TypeError, ValueError):
        raise ValidationFailure(f"Invalid event id: {event_id!r}")
    event = db.session.get(Event, key)
    if event is None:
        raise NotFound("Event not found", event_id=key)
    return event


def parse_event_date(value: date | str | None) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = (value or "").strip()
    if not raw:
        raise ValidationFailure("Event date is required.")
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise ValidationFailure(f"Event date must be YYYY-MM-DD: {raw!r}")


def _event_name_taken(name: str) -> bool:
    return (
        db.session.query(Event.id)
        .filter(func.lower(Event.event_name) == name.lower())
        .first()
        is not None
    )


def create_event(
    event_name: str,
    event_date: date | str,
    motive: str,
    registration_fee: str | None = None,
) -> OperationResult:
    """Create an event and adopt students who registered under its name."""

    try:
        name = (event_name or "").strip()
        motive = (motive or "").strip()
        if not name:
            raise ValidationFailure("Please provide an event name.")
        if not motive:
            raise ValidationFailure("Please provide an event motive or description.")
        day = parse_event_date(event_date)
        if _event_name_taken(name):
            raise ValidationFailure("An event with this name already exists.")

        event = Event(
            event_name=name,
            event_date=day,
            motive=motive,
            registration_fee=(registration_fee or "").strip() or None,
        )
        db.session.add(event)
        db.session.flush()
        adopted = (
            db.session.query(EventStudent)
            .filter(EventStudent.event_id.is_(None), EventStudent.event_name == name)
            .update({Registrant.event_id: event.id}, synchronize_session=False)
        )
        db.session.commit()
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except IntegrityError:
        db.session.rollback()
        return OperationResult.fail(
            ValidationFailure("An event with this name already exists.")
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("[EVENT] create failed name=%s", event_name)
        return OperationResult.fail(storage_failure(exc, "create event"))

    current_app.logger.info(
        "[EVENT] created id=%s name=%s adopted=%s", event.id, event.event_name, adopted
    )
    return OperationResult.ok(event.to_dict())


def list_events() -> OperationResult:
    try:
        events = (
            db.session.query(Event)
            .order_by(Event.created_at.desc(), Event.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "list events"))
    return OperationResult.ok([event.to_dict() for event in events])


def get_event(event_id) -> OperationResult:
    try:
        return OperationResult.ok(load_event(event_id).to_dict())
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "load event"))


def delete_event(event_id) -> OperationResult:
    """Delete an event. Registrants keep their ``event_name``; the id link is cleared."""

    try:
        event = load_event(event_id)
        db.session.query(Registrant).filter(Registrant.event_id == event.id).update(
            {Registrant.event_id: None}, synchronize_session=False
        )
        db.session.query(CertificateDelivery).filter(
            CertificateDelivery.event_id == event.id
        ).delete(synchronize_session=False)
        db.session.delete(event)
        db.session.commit()
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("[EVENT] delete failed id=%s", event_id)
        return OperationResult.fail(storage_failure(exc, "delete event"))
    current_app.logger.info("[EVENT] deleted id=%s", event_id)
    return OperationResult.ok({"id": int(event_id)})


def event_attendance_report(event_id) -> OperationResult:
    try:
        event = load_event(event_id)
        students = (
            db.session.query(EventStudent)
            .filter(EventStudent.linked_to(event))
            .order_by(EventStudent.name, EventStudent.id)
            .all()
        )
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "load attendance"))

    rows = [
        {
            "name": s.name,
            "email": s.email,
            "roll_number": s.roll_number,
            "university_roll_no": s.university_roll_no,
            "branch": s.branch,
            "year": s.year,
            "phone_number": s.phone_number,
            "attendance_count": len(s.attendance),
        }
        for s in students
    ]
    return OperationResult.ok({"event_name": event.event_name, "rows": rows})


def generate_event_poster(event_id) -> OperationResult:
    """Render the promotional poster; ``data`` holds the PNG bytes."""

    try:
        event = load_event(event_id)
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "load event"))

    base = current_app.config["APP_BASE_URL"].rstrip("/")
    try:
        png = render_event_poster(
            event,
            registration_url=f"{base}/events/{event.id}",
            org_name=current_app.config["ORG_NAME"],
            venue=current_app.config["EVENT_VENUE"],
            font_bold_path=current_app.config["CERT_FONT_BOLD_PATH"],
            font_regular_path=current_app.config["CERT_FONT_REGULAR_PATH"],
        )
    except EventHubError as exc:
        current_app.logger.warning("[POSTER] event=%s %s", event.id, exc.message)
        return OperationResult.fail(exc)
    return OperationResult.ok(png)
