from __future__ import annotations

from flask import current_app, render_template
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import emailer
from ..app import db
from ..models import CoreMember, Event, EventStudent, Registrant
from ..shared.qr import qr_png
from ..shared.results import (
    EventHubError,
    NotFound,
    OperationResult,
    ValidationFailure,
    storage_failure,
)
from .identity import build_scan_url, issue_scan_token

CORE_TEAM_LABEL = "Core Team Registration"
DUPLICATE_MESSAGE = "A user with this email or roll number already exists"
REVIEW_FLAGS = (
    "round_one_attendance",
    "round_two_attendance",
    "round_one_qualified",
    "round_two_qualified",
)


def _required(value: str | None, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailure(f"{label} is required.")
    return cleaned


def _optional(value) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def _domains(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value if str(item).strip()]


def _duplicate_exists(model: type[Registrant], email: str, keys: list[str]) -> bool:
    criteria = [func.lower(model.email) == email.lower()]
    for key in keys:
        criteria.append(func.lower(model.roll_number) == key.lower())
        if model is EventStudent:
            criteria.append(func.lower(model.university_roll_no) == key.lower())
    return db.session.query(model.id).filter(or_(*criteria)).first() is not None


def _send_registration_mail(registrant: Registrant, label: str) -> None:
    result = emailer.send(
        registrant.email,
        "Registration Confirmation",
        render_template("email/registration.txt", registrant=registrant, label=label),
        html=render_template("email/registration.html", registrant=registrant, label=label),
        attachments=[
            emailer.Attachment("attendance-qr.png", qr_png(registrant.scan_identity), "image/png")
        ],
    )
    if not result.get("ok"):
        current_app.logger.warning(
            "[REGISTER] confirmation mail failed registrant=%s detail=%s",
            registrant.id,
            result.get("detail"),
        )


def _save(registrant: Registrant, label: str) -> OperationResult:
    db.session.add(registrant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return OperationResult.fail(ValidationFailure(DUPLICATE_MESSAGE))
    current_app.logger.info(
        "[REGISTER] kind=%s registrant=%s label=%s", registrant.kind, registrant.id, label
    )
    _send_registration_mail(registrant, label)
    return OperationResult.ok({"id": registrant.id, "scan_identity": registrant.scan_identity})


def register_core_member(name: str, email: str, roll_number: str) -> OperationResult:
    try:
        name = _required(name, "Name")
        email = _required(email, "Email")
        roll_number = _required(roll_number, "Roll number")
        if _duplicate_exists(CoreMember, email, [roll_number]):
            raise ValidationFailure(DUPLICATE_MESSAGE)
        member = CoreMember(
            name=name,
            email=email,
            roll_number=roll_number,
            scan_identity=build_scan_url(issue_scan_token()),
        )
        return _save(member, CORE_TEAM_LABEL)
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("[REGISTER] core member failed email=%s", email)
        return OperationResult.fail(storage_failure(exc, "register user"))


def register_student(
    name: str,
    email: str,
    roll_number: str,
    event_name: str,
    university_roll_no: str | None = None,
    branch: str | None = None,
    year: str | None = None,
    phone_number: str | None = None,
    *,
    cgpa: str | None = None,
    backlogs: str | None = None,
    summary: str | None = None,
    clubs: str | None = None,
    aim: str | None = None,
    believe: str | None = None,
    expect: str | None = None,
    domains=None,
) -> OperationResult:
    """Register a student for an event by name.

    The event does not need to exist yet; the student is linked by id once an
    event with this exact name is created. The recruitment profile fields are
    optional; ``domains`` takes a list or a comma-separated string.
    """

    try:
        name = _required(name, "Name")
        email = _required(email, "Email")
        roll_number = _required(roll_number, "Roll number")
        event_name = _required(event_name, "Event name")
        university_roll_no = (university_roll_no or "").strip() or None
        keys = [roll_number] + ([university_roll_no] if university_roll_no else [])
        if _duplicate_exists(EventStudent, email, keys):
            raise ValidationFailure(DUPLICATE_MESSAGE)
        event = (
            db.session.query(Event).filter(Event.event_name == event_name).one_or_none()
        )
        student = EventStudent(
            name=name,
            email=email,
            roll_number=roll_number,
            event_name=event_name,
            event_id=event.id if event else None,
            university_roll_no=university_roll_no,
            branch=_optional(branch),
            year=_optional(year),
            phone_number=_optional(phone_number),
            cgpa=_optional(cgpa),
            backlogs=_optional(backlogs),
            summary_text=_optional(summary),
            clubs=_optional(clubs),
            aim=_optional(aim),
            believe=_optional(believe),
            expect=_optional(expect),
            domains=_domains(domains),
            scan_identity=build_scan_url(issue_scan_token()),
        )
        return _save(student, event_name)
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("[REGISTER] student failed email=%s", email)
        return OperationResult.fail(storage_failure(exc, "register student"))


def _first_match(models, build_criteria) -> Registrant | None:
    for model in models:
        found = (
            db.session.query(model)
            .filter(build_criteria(model))
            .order_by(model.id)
            .first()
        )
        if found is not None:
            return found
    return None


def _lookup(models, build_criteria, value: str | None, label: str) -> OperationResult:
    try:
        key = _required(value, label)
        registrant = _first_match(models, lambda model: build_criteria(model, key.lower()))
        if registrant is None:
            raise NotFound("User not found")
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "fetch user"))
    return OperationResult.ok(registrant.to_dict())


def find_registrant_by_roll_number(roll_number: str | None) -> OperationResult:
    """Case-insensitive exact match on roll number or university roll number."""

    def criteria(model, key):
        return or_(
            func.lower(model.roll_number) == key,
            func.lower(model.university_roll_no) == key,
        )

    return _lookup((CoreMember, EventStudent), criteria, roll_number, "Roll number")


def find_registrant_by_email(email: str | None) -> OperationResult:
    def criteria(model, key):
        return func.lower(model.email) == key

    return _lookup((EventStudent, CoreMember), criteria, email, "Email")


def get_registrant(registrant_id) -> OperationResult:
    try:
        registrant = db.session.get(Registrant, int(registrant_id))
    except (TypeError, ValueError):
        return OperationResult.fail(ValidationFailure("Invalid registrant id."))
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "fetch user"))
    if registrant is None:
        return OperationResult.fail(NotFound("User not found"))
    return OperationResult.ok(registrant.to_dict())


def list_registrants() -> OperationResult:
    try:
        rows = db.session.query(Registrant).order_by(Registrant.name, Registrant.id).all()
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "fetch users"))
    return OperationResult.ok([r.to_dict() for r in rows])


def list_recruitments() -> OperationResult:
    """Students with their recruitment profile and review, newest first."""
    try:
        rows = (
            db.session.query(EventStudent)
            .order_by(EventStudent.created_at.desc(), EventStudent.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "fetch recruitments"))
    return OperationResult.ok([s.to_dict() for s in rows])


def _review_score(value) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationFailure("Review must be a whole number.")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationFailure("Review must be a whole number.") from None


def review_student(
    student_id,
    review=None,
    comment: str | None = None,
    **flags,
) -> OperationResult:
    """Store an admin's review of a student.

    ``review`` and ``comment`` are always overwritten (an omitted comment
    becomes ""). Round flags are keyword arguments named in ``REVIEW_FLAGS``
    and are only changed when passed a value other than None.
    """
    try:
        unknown = sorted(set(flags) - set(REVIEW_FLAGS))
        if unknown:
            raise ValidationFailure(f"Unknown review field: {unknown[0]}")
        for name, value in flags.items():
            if value is not None and not isinstance(value, bool):
                raise ValidationFailure(f"{name} must be true or false.")
        score = _review_score(review)
        try:
            student = db.session.get(EventStudent, int(student_id))
        except (TypeError, ValueError):
            raise ValidationFailure("Invalid student id.") from None
        if student is None:
            raise NotFound("Student not found")
        student.review_score = score
        student.review_comment = comment or ""
        for name, value in flags.items():
            if value is not None:
                setattr(student, name, value)
        db.session.commit()
    except EventHubError as exc:
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("[RECRUIT] review failed student=%s", student_id)
        return OperationResult.fail(storage_failure(exc, "review student"))
    current_app.logger.info(
        "[RECRUIT] reviewed student=%s review=%s flags=%s",
        student.id,
        score,
        {k: v for k, v in flags.items() if v is not None},
    )
    return OperationResult.ok(student.to_dict())
