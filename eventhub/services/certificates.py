"""Render and email participation certificates for one event."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field

from flask import current_app, render_template
from sqlalchemy.exc import SQLAlchemyError

from .. import emailer
from ..app import db
from ..models import CertificateDelivery, Event, EventStudent
from ..models.deliveries import FAILED, SENT
from ..shared.certificates import (
    PDF_MIME,
    CertificateRenderError,
    CertificateTemplate,
    TemplatePaths,
    load_certificate_template,
    render_certificate,
)
from ..shared.results import (
    BatchInProgress,
    EventHubError,
    MailFailure,
    OperationResult,
    ValidationFailure,
    storage_failure,
)
from ..shared.time import now_utc, to_storage
from .eligibility import find_eligible_registrants
from .events import load_event

__all__ = [
    "BatchReport",
    "distribute_certificates",
    "event_batch_lock",
]

_batch_locks: dict[int, threading.Lock] = {}
_batch_locks_guard = threading.Lock()


@contextmanager
def event_batch_lock(event_id: int):
    """Advisory, in-process lock so one event never runs two batches at once."""
    with _batch_locks_guard:
        lock = _batch_locks.setdefault(event_id, threading.Lock())
    if not lock.acquire(blocking=False):
        raise BatchInProgress(
            "Certificates for this event are already being sent.", event_id=event_id
        )
    try:
        yield
    finally:
        lock.release()


@dataclass
class BatchReport:
    event_id: int
    event_name: str
    eligible: int = 0
    sent: list[int] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    processed: list[int] = field(default_factory=list)
    cancelled: bool = False

    def add_failure(self, registrant: EventStudent, error: EventHubError) -> None:
        self.failed.append(
            {
                "registrant_id": registrant.id,
                "name": registrant.name,
                "email": registrant.email,
                "code": error.code,
                "reason": error.message,
                "retryable": error.retryable,
            }
        )

    @property
    def message(self) -> str:
        if not self.eligible:
            return "No eligible recipients; no certificates were sent."
        text = f"Sent {len(self.sent)} certificate(s)"
        if self.failed:
            text += f"; {len(self.failed)} failed"
        if self.skipped:
            text += f"; {len(self.skipped)} already sent"
        if self.cancelled:
            text += f"; cancelled after {len(self.processed)} of {self.eligible}"
        return text

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "event_name": self.event_name,
            "eligible": self.eligible,
            "sent": len(self.sent),
            "sent_ids": list(self.sent),
            "failed": list(self.failed),
            "skipped": list(self.skipped),
            "processed": list(self.processed),
            "cancelled": self.cancelled,
            "message": self.message,
        }


def _delivered_ids(event: Event) -> set[int]:
    rows = (
        db.session.query(CertificateDelivery.registrant_id)
        .filter(
            CertificateDelivery.event_id == event.id,
            CertificateDelivery.status == SENT,
        )
        .all()
    )
    return {registrant_id for (registrant_id,) in rows}


def _ledger_detail(error: EventHubError) -> str:
    flag = " retryable" if error.retryable else ""
    return f"[{error.code}{flag}] {error.message}"


def _record_delivery(
    event: Event, registrant: EventStudent, error: EventHubError | None, detail: str = "sent"
) -> None:
    try:
        row = (
            db.session.query(CertificateDelivery)
            .filter_by(event_id=event.id, registrant_id=registrant.id)
            .one_or_none()
        )
        if row is None:
            row = CertificateDelivery(event_id=event.id, registrant_id=registrant.id, attempts=0)
            db.session.add(row)
        row.attempts = (row.attempts or 0) + 1
        row.status = SENT if error is None else FAILED
        row.detail = detail if error is None else _ledger_detail(error)
        if error is None:
            row.sent_at = to_storage(now_utc())
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "[CERT-SEND] ledger write failed event=%s registrant=%s", event.id, registrant.id
        )


def _send_one(template: CertificateTemplate, event: Event, registrant: EventStudent) -> dict:
    """Render and mail one certificate; returns the emailer's result dict."""
    rendered = render_certificate(
        template, registrant.name, event.event_name, event.event_date
    )
    context = {"registrant": registrant, "event": event}
    return emailer.send(
        registrant.email,
        f"Your Certificate for {event.event_name}",
        render_template("email/certificate.txt", **context),
        html=render_template("email/certificate.html", **context),
        attachments=[emailer.Attachment(rendered.filename, rendered.pdf, PDF_MIME)],
    )


def _run_batch(
    event: Event,
    registrants: list[EventStudent],
    template: CertificateTemplate,
    report: BatchReport,
    *,
    resend: bool,
    cancel_event: threading.Event | None,
) -> None:
    already_sent = set() if resend else _delivered_ids(event)
    total = len(registrants)
    for idx, registrant in enumerate(registrants, start=1):
        if cancel_event is not None and cancel_event.is_set():
            report.cancelled = True
            current_app.logger.warning(
                "[CERT-BATCH] event=%s cancelled after %s/%s", event.id, idx - 1, total
            )
            break
        report.processed.append(registrant.id)
        if registrant.id in already_sent:
            report.skipped.append(registrant.id)
            continue

        current_app.logger.info(
            "[CERT-SEND] %s/%s event=%s registrant=%s email=%s",
            idx,
            total,
            event.id,
            registrant.id,
            registrant.email,
        )
        error: EventHubError | None = None
        result: dict = {}
        try:
            result = _send_one(template, event, registrant)
        except CertificateRenderError as exc:
            error = ValidationFailure(f"render failed: {exc}")
        except Exception as exc:
            current_app.logger.exception(
                "[CERT-SEND] unexpected error event=%s registrant=%s", event.id, registrant.id
            )
            error = EventHubError(f"unexpected error: {exc.__class__.__name__}")
        else:
            if not result.get("ok"):
                error = MailFailure(
                    str(result.get("detail") or "mail failed"),
                    retryable=bool(result.get("retryable")),
                )

        if error is None:
            report.sent.append(registrant.id)
            _record_delivery(event, registrant, None, str(result.get("detail") or "sent"))
            continue

        report.add_failure(registrant, error)
        current_app.logger.warning(
            "[CERT-SEND] failed event=%s registrant=%s code=%s retryable=%s reason=%s",
            event.id,
            registrant.id,
            error.code,
            error.retryable,
            error.message,
        )
        _record_delivery(event, registrant, error)


def distribute_certificates(
    event_id,
    *,
    resend: bool = False,
    cancel_event: threading.Event | None = None,
    template_paths: TemplatePaths | None = None,
) -> OperationResult:
    """Email a certificate to every eligible registrant of an event.

    Aborts (``success=False``) only when the event is unknown, a batch for it
    is already running, storage fails during setup, or the template is
    missing. Individual render or mail failures are reported in ``failed``
    while the rest of the batch continues. Registrants already recorded as
    sent are skipped unless ``resend`` is true.
    """

    try:
        event = load_event(event_id)
    except EventHubError as exc:
        current_app.logger.error("[CERT-BATCH] event=%s aborted: %s", event_id, exc.message)
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        return OperationResult.fail(storage_failure(exc, "load event"))

    try:
        with event_batch_lock(event.id):
            registrants = find_eligible_registrants(event)
            report = BatchReport(event.id, event.event_name, eligible=len(registrants))
            current_app.logger.info(
                "[CERT-BATCH] event=%s name=%s eligible=%s",
                event.id,
                event.event_name,
                report.eligible,
            )
            if not registrants:
                return OperationResult.ok(report.to_dict())

            template = load_certificate_template(
                template_paths or TemplatePaths.from_config(current_app.config)
            )
            _run_batch(
                event,
                registrants,
                template,
                report,
                resend=resend,
                cancel_event=cancel_event,
            )
    except EventHubError as exc:
        current_app.logger.error("[CERT-BATCH] event=%s aborted: %s", event.id, exc.message)
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("[CERT-BATCH] event=%s storage error", event.id)
        return OperationResult.fail(storage_failure(exc, "select eligible registrants"))

    current_app.logger.info("[CERT-BATCH] event=%s %s", event.id, report.message)
    return OperationResult.ok(report.to_dict())
