from __future__ import annotations

from ..app import db

SENT = "sent"
FAILED = "failed"


class CertificateDelivery(db.Model):
    """Ledger of certificate emails per (event, registrant)."""

    __tablename__ = "certificate_deliveries"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    registrant_id = db.Column(
        db.Integer, db.ForeignKey("registrants.id", ondelete="CASCADE"), nullable=False
    )
    status = db.Column(db.String(16), nullable=False, default=FAILED)
    detail = db.Column(db.Text)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    sent_at = db.Column(db.DateTime)
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint(
            "event_id", "registrant_id", name="uq_certificate_delivery_event_registrant"
        ),
    )
