import threading
from datetime import date

import pytest

from eventhub import emailer
from eventhub.app import db
from eventhub.models import CertificateDelivery
from eventhub.services.certificates import distribute_certificates, event_batch_lock
from eventhub.shared.certificates import TemplatePaths

from conftest import add_attendance, login, make_event, make_student, utc


pytestmark = pytest.mark.smoke


class FakeMailer:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def __call__(self, recipients, subject, body, html=None, attachments=None):
        self.calls.append(
            {
                "to": recipients,
                "subject": subject,
                "attachments": list(attachments or []),
            }
        )
        if recipients in self.failing:
            return {"ok": False, "detail": "550 mailbox unavailable", "retryable": False}
        return {"ok": True, "detail": "sent", "retryable": False}


@pytest.fixture
def mailer(monkeypatch):
    fake = FakeMailer()
    monkeypatch.setattr(emailer, "send", fake)
    return fake


def _attended(event, count):
    students = []
    for idx in range(count):
        student = make_student(f"s{idx}", event=event, name=f"Student {idx}")
        add_attendance(student, utc(2026, 3, 5, 6, idx))
        students.append(student)
    return students


def test_startup_school_sends_two_certificates(app, mailer):
    event = make_event("Startup School", date(2026, 3, 5))
    a, b = _attended(event, 2)
    absent = make_student("absent", event=event)
    add_attendance(absent, utc(2026, 3, 4, 6, 0))

    result = distribute_certificates(event.id)

    assert result.success
    assert result.data["sent"] == 2
    assert result.data["sent_ids"] == [a.id, b.id]
    assert result.data["failed"] == []
    assert [c["to"] for c in mailer.calls] == [a.email, b.email]
    call = mailer.calls[0]
    assert call["subject"] == "Your Certificate for Startup School"
    attachment = call["attachments"][0]
    assert attachment.filename == "Certificate_Startup_School.pdf"
    assert attachment.mime_type == "application/pdf"
    assert attachment.content.startswith(b"%PDF")


def test_mail_failures_do_not_stop_the_batch(app, monkeypatch):
    event = make_event()
    students = _attended(event, 5)
    fake = FakeMailer(failing={students[1].email, students[3].email})
    monkeypatch.setattr(emailer, "send", fake)

    result = distribute_certificates(event.id)

    assert result.success
    assert len(fake.calls) == 5
    assert result.data["sent"] == 3
    assert [f["registrant_id"] for f in result.data["failed"]] == [students[1].id, students[3].id]
    assert result.data["failed"][0]["reason"] == "550 mailbox unavailable"
    assert result.data["message"] == "Sent 3 certificate(s); 2 failed"


def test_render_failure_is_isolated(app, mailer):
    event = make_event()
    good = make_student("good", event=event)
    blank = make_student("blank", event=event, name="   ")
    for student in (good, blank):
        add_attendance(student, utc(2026, 3, 5, 6, 0))

    result = distribute_certificates(event.id)

    assert result.success
    assert result.data["sent_ids"] == [good.id]
    assert result.data["failed"][0]["registrant_id"] == blank.id
    assert result.data["failed"][0]["reason"].startswith("render failed")
    assert [c["to"] for c in mailer.calls] == [good.email]


def test_timed_out_send_is_reported_retryable(app, monkeypatch):
    event = make_event()
    (student,) = _attended(event, 1)
    monkeypatch.setattr(
        emailer,
        "send",
        lambda *a, **k: {"ok": False, "detail": "timeout: timed out", "retryable": True},
    )

    result = distribute_certificates(event.id)

    failure = result.data["failed"][0]
    assert failure["code"] == "MailFailure"
    assert failure["retryable"] is True
    assert failure["reason"] == "timeout: timed out"
    row = db.session.query(CertificateDelivery).filter_by(registrant_id=student.id).one()
    assert row.status == "failed"
    assert row.detail == "[MailFailure retryable] timeout: timed out"


def test_permanent_failures_are_not_retryable(app, monkeypatch):
    event = make_event()
    bounced = make_student("bounced", event=event)
    blank = make_student("blank", event=event, name="   ")
    for student in (bounced, blank):
        add_attendance(student, utc(2026, 3, 5, 6, 0))
    monkeypatch.setattr(emailer, "send", FakeMailer(failing={bounced.email}))

    result = distribute_certificates(event.id)

    by_id = {f["registrant_id"]: f for f in result.data["failed"]}
    assert (by_id[bounced.id]["code"], by_id[bounced.id]["retryable"]) == ("MailFailure", False)
    assert (by_id[blank.id]["code"], by_id[blank.id]["retryable"]) == ("ValidationFailure", False)
    row = db.session.query(CertificateDelivery).filter_by(registrant_id=blank.id).one()
    assert row.detail.startswith("[ValidationFailure] render failed")


def test_unknown_event_aborts(app, mailer):
    result = distribute_certificates(4242)

    assert not result.success
    assert result.error.code == "NotFound"
    assert mailer.calls == []


def test_missing_template_aborts_before_any_send(app, mailer, tmp_path):
    event = make_event()
    _attended(event, 2)
    defaults = TemplatePaths.from_config(app.config)
    paths = TemplatePaths(str(tmp_path / "gone.png"), defaults.font_bold, defaults.font_regular)

    result = distribute_certificates(event.id, template_paths=paths)

    assert not result.success
    assert result.error.code == "TemplateMissing"
    assert mailer.calls == []
    assert db.session.query(CertificateDelivery).count() == 0


def test_no_eligible_recipients_is_success(app, mailer, tmp_path):
    event = make_event()
    make_student("absent", event=event)
    app.config["CERT_TEMPLATE_PATH"] = str(tmp_path / "not-needed.png")

    result = distribute_certificates(event.id)

    assert result.success
    assert result.data["eligible"] == 0
    assert result.data["message"] == "No eligible recipients; no certificates were sent."
    assert mailer.calls == []


def test_rerun_skips_delivered_unless_resend(app, monkeypatch):
    event = make_event()
    students = _attended(event, 3)
    first_fake = FakeMailer(failing={students[2].email})
    monkeypatch.setattr(emailer, "send", first_fake)
    distribute_certificates(event.id)

    retry_fake = FakeMailer()
    monkeypatch.setattr(emailer, "send", retry_fake)
    retry = distribute_certificates(event.id)

    assert retry.data["skipped"] == [students[0].id, students[1].id]
    assert [c["to"] for c in retry_fake.calls] == [students[2].email]
    row = (
        db.session.query(CertificateDelivery)
        .filter_by(event_id=event.id, registrant_id=students[2].id)
        .one()
    )
    assert row.status == "sent"
    assert row.attempts == 2

    resend_fake = FakeMailer()
    monkeypatch.setattr(emailer, "send", resend_fake)
    resent = distribute_certificates(event.id, resend=True)

    assert resent.data["sent"] == 3
    assert len(resend_fake.calls) == 3


def test_cancellation_stops_between_recipients(app, monkeypatch):
    event = make_event()
    students = _attended(event, 4)
    cancel = threading.Event()
    fake = FakeMailer()

    def send_then_cancel(*args, **kwargs):
        result = fake(*args, **kwargs)
        if len(fake.calls) == 2:
            cancel.set()
        return result

    monkeypatch.setattr(emailer, "send", send_then_cancel)

    result = distribute_certificates(event.id, cancel_event=cancel)

    assert result.success
    assert result.data["cancelled"] is True
    assert result.data["processed"] == [students[0].id, students[1].id]
    assert len(fake.calls) == 2


def test_concurrent_batch_for_same_event_is_rejected(app, mailer):
    event = make_event()
    _attended(event, 1)

    with event_batch_lock(event.id):
        result = distribute_certificates(event.id)

    assert not result.success
    assert result.error.code == "BatchInProgress"
    assert result.status_code == 409
    assert mailer.calls == []
    assert distribute_certificates(event.id).success


def test_certificates_route(client, admin, mailer):
    event = make_event()
    _attended(event, 2)

    anonymous = client.post(f"/events/{event.id}/certificates")
    login(client, admin)
    resp = client.post(f"/events/{event.id}/certificates")

    assert anonymous.status_code == 401
    assert resp.status_code == 200
    assert resp.get_json()["data"]["sent"] == 2


def test_certificates_route_unknown_event(client, admin, mailer):
    login(client, admin)

    resp = client.post("/events/999/certificates")

    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "NotFound"
