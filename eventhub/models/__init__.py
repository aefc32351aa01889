from __future__ import annotations

import base64

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.orm import validates

from ..app import db
from ..shared.passwords import hash_password, verify_password

from .attendance import AttendanceEntry  # noqa: E402,F401
from .deliveries import CertificateDelivery  # noqa: E402,F401


class User(db.Model):
    """Staff operator. ``is_admin`` is the privilege required to scan badges."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255))
    full_name = db.Column(db.String(255))
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("ix_users_email_lower", db.func.lower(email), unique=True),
    )

    @validates("email")
    def lower_email(self, key, value):  # pragma: no cover - simple normalizer
        return value.lower()

    def set_password(self, plain: str) -> None:
        self.password_hash = hash_password(plain)

    def check_password(self, plain: str) -> bool:
        if not self.password_hash:
            return False
        return verify_password(plain, self.password_hash)


class Settings(db.Model):
    __tablename__ = "settings"
    id = db.Column(db.Integer, primary_key=True, default=1)
    smtp_host = db.Column(db.String(255))
    smtp_port = db.Column(db.Integer)
    smtp_user = db.Column(db.String(255))
    smtp_from_default = db.Column(db.String(255))
    smtp_from_name = db.Column(db.String(255))
    smtp_pass_enc = db.Column(db.Text)
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )

    # always enforce singleton row id=1
    @staticmethod
    def get() -> "Settings | None":
        return db.session.get(Settings, 1)

    def set_smtp_pass(self, plain: str) -> None:
        if not plain:
            self.smtp_pass_enc = None
            return
        key = current_app.config.get("SECRET_KEY", "").encode()
        data = plain.encode()
        xored = bytes([b ^ key[i % len(key)] for i, b in enumerate(data)])
        self.smtp_pass_enc = base64.b64encode(xored).decode()

    def get_smtp_pass(self) -> str | None:
        if not self.smtp_pass_enc:
            return None
        key = current_app.config.get("SECRET_KEY", "").encode()
        raw = base64.b64decode(self.smtp_pass_enc.encode())
        data = bytes([b ^ key[i % len(key)] for i, b in enumerate(raw)])
        return data.decode()


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    event_name = db.Column(db.String(255), nullable=False)
    event_date = db.Column(db.Date, nullable=False)
    motive = db.Column(db.Text, nullable=False)
    registration_fee = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )
    __table_args__ = (
        db.Index("uix_events_name_lower", db.func.lower(event_name), unique=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_name": self.event_name,
            "event_date": self.event_date.isoformat() if self.event_date else None,
            "motive": self.motive,
            "registration_fee": self.registration_fee,
        }


class Registrant(db.Model):
    """A person holding a scan badge: a core member or an event student.

    ``scan_identity`` is the full scan URL printed in the QR code. Students
    point at their event through ``event_id``; ``event_name`` is the string
    they registered with and only decides the link while ``event_id`` is unset.
    """

    __tablename__ = "registrants"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False)
    scan_identity = db.Column(db.String(512), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    roll_number = db.Column(db.String(64), nullable=False)
    event_name = db.Column(db.String(255))
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="SET NULL"), index=True
    )
    university_roll_no = db.Column(db.String(64))
    branch = db.Column(db.String(120))
    year = db.Column(db.String(16))
    phone_number = db.Column(db.String(32))
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    event = db.relationship("Event")
    attendance = db.relationship(
        "AttendanceEntry",
        back_populates="registrant",
        order_by="AttendanceEntry.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"polymorphic_on": kind}
    __table_args__ = (
        db.Index("uix_registrants_kind_scan", kind, scan_identity, unique=True),
        db.Index(
            "uix_registrants_kind_email_lower", kind, db.func.lower(email), unique=True
        ),
        db.Index(
            "uix_registrants_kind_roll_lower",
            kind,
            db.func.lower(roll_number),
            unique=True,
        ),
        db.Index(
            "uix_registrants_kind_uni_roll_lower",
            kind,
            db.func.lower(university_roll_no),
            unique=True,
        ),
        db.Index("ix_registrants_event_name", event_name),
    )

    @validates("email")
    def strip_email(self, key, value):  # pragma: no cover - simple normalizer
        return (value or "").strip()

    @classmethod
    def linked_to(cls, event: Event):
        """SQL criterion for registrants that belong to ``event``."""
        return or_(
            cls.event_id == event.id,
            and_(cls.event_id.is_(None), cls.event_name == event.event_name),
        )

    def summary(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "roll_number": self.roll_number,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "email": self.email,
            "roll_number": self.roll_number,
            "scan_identity": self.scan_identity,
            "attendance": [entry.to_dict() for entry in self.attendance],
        }


class CoreMember(Registrant):
    KIND = "core"
    __mapper_args__ = {"polymorphic_identity": KIND}


class EventStudent(Registrant):
    """Student registered for an event, optionally applying to the club.

    The recruitment profile is filled at registration; the review columns are
    set later by an admin through ``review_student``.
    """

    KIND = "student"
    __mapper_args__ = {"polymorphic_identity": KIND}

    cgpa = db.Column(db.String(16))
    backlogs = db.Column(db.String(16))
    summary_text = db.Column("summary", db.Text)
    clubs = db.Column(db.Text)
    aim = db.Column(db.Text)
    believe = db.Column(db.Text)
    expect = db.Column(db.Text)
    domains = db.Column(db.JSON, default=list)

    review_score = db.Column("review", db.Integer)
    review_comment = db.Column("comment", db.Text, default="")
    round_one_attendance = db.Column(db.Boolean)
    round_two_attendance = db.Column(db.Boolean)
    round_one_qualified = db.Column(db.Boolean)
    round_two_qualified = db.Column(db.Boolean)

    def recruitment_dict(self) -> dict:
        return {
            "cgpa": self.cgpa,
            "backlogs": self.backlogs,
            "summary": self.summary_text,
            "clubs": self.clubs,
            "aim": self.aim,
            "believe": self.believe,
            "expect": self.expect,
            "domains": list(self.domains or []),
            "review": self.review_score,
            "comment": self.review_comment or "",
            "round_one_attendance": self.round_one_attendance,
            "round_two_attendance": self.round_two_attendance,
            "round_one_qualified": self.round_one_qualified,
            "round_two_qualified": self.round_two_qualified,
        }

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update(
            {
                "event_name": self.event_name,
                "event_id": self.event_id,
                "university_roll_no": self.university_roll_no,
                "branch": self.branch,
                "year": self.year,
                "phone_number": self.phone_number,
            }
        )
        payload.update(self.recruitment_dict())
        return payload


# scan lookups try core members first, then event students
REGISTRANT_COLLECTIONS: tuple[type[Registrant], ...] = (CoreMember, EventStudent)
