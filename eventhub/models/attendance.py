from __future__ import annotations

from ..app import db
from ..shared.time import as_utc


class AttendanceEntry(db.Model):
    """One scan of a registrant's badge.

    ``recorded_at`` is the absolute instant (naive UTC). ``day_key`` is the
    calendar day in ``day_zone``, the attendance timezone in force when the
    row was written. Unique per (registrant, day_key, day_zone), so rows
    keyed under an earlier zone never block marks made under a new one.
    """

    __tablename__ = "attendance_entries"

    id = db.Column(db.Integer, primary_key=True)
    registrant_id = db.Column(
        db.Integer,
        db.ForeignKey("registrants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recorded_at = db.Column(db.DateTime, nullable=False, index=True)
    present = db.Column(db.Boolean, nullable=False, default=True)
    day_key = db.Column(db.Date, nullable=False)
    day_zone = db.Column(db.String(64), nullable=False)

    registrant = db.relationship("Registrant", back_populates="attendance")

    __table_args__ = (
        db.UniqueConstraint(
            "registrant_id",
            "day_key",
            "day_zone",
            name="uq_attendance_registrant_day_zone",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "date": as_utc(self.recorded_at).isoformat(),
            "present": bool(self.present),
        }
