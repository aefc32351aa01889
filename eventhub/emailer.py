import json
import logging
import os
import smtplib
import socket
import sys
from email.message import EmailMessage
from typing import NamedTuple, Sequence

from flask import current_app, has_app_context

from .shared.mail_utils import normalize_recipients

logger = logging.getLogger("eventhub.mailer")
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)

DEFAULT_TIMEOUT_SECONDS = 20.0


class Attachment(NamedTuple):
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


def _stringify_envelope(recipients: Sequence[str]) -> str:
    return json.dumps(list(recipients))


def _timeout() -> float:
    if has_app_context():
        return float(current_app.config.get("MAIL_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    return DEFAULT_TIMEOUT_SECONDS


def _attach(msg: EmailMessage, attachment: Attachment) -> None:
    maintype, _, subtype = (attachment.mime_type or "").partition("/")
    if not maintype or not subtype:
        maintype, subtype = "application", "octet-stream"
    msg.add_attachment(
        attachment.content,
        maintype=maintype,
        subtype=subtype,
        filename=attachment.filename,
    )


def send(
    recipients: Sequence[str] | str | None,
    subject: str,
    body: str,
    html: str | None = None,
    attachments: Sequence[Attachment] | None = None,
):
    """Send one message. Never raises; returns ``{"ok", "detail", "retryable"}``."""
    from .models import Settings  # local import to avoid circular import at module load

    settings = Settings.get()
    host = (settings.smtp_host if settings and settings.smtp_host else os.getenv("SMTP_HOST"))
    port = (settings.smtp_port if settings and settings.smtp_port else os.getenv("SMTP_PORT"))
    user = (settings.smtp_user if settings and settings.smtp_user else os.getenv("SMTP_USER"))
    from_addr = (
        settings.smtp_from_default if settings and settings.smtp_from_default else os.getenv("SMTP_FROM_DEFAULT")
    )
    from_name = (
        settings.smtp_from_name if settings and settings.smtp_from_name else os.getenv("SMTP_FROM_NAME", "")
    )
    password = (
        settings.get_smtp_pass() if settings and settings.get_smtp_pass() else os.getenv("SMTP_PASS")
    )

    envelope, header = normalize_recipients(recipients)
    attachment_names = [a.filename for a in attachments or ()]
    mode = "real"
    if not host or not port or not from_addr:
        mode = "stub"
        logger.info(
            "[MAIL-OUT] mode=%s to_header=%s envelope=%s subject=\"%s\" attachments=%s host=%s result=stub",
            mode,
            header,
            _stringify_envelope(envelope),
            subject,
            attachment_names,
            host,
        )
        return {"ok": False, "detail": "stub: missing config", "retryable": False}

    if not envelope:
        logger.warning(
            "[MAIL-NO-RECIPIENTS] subject=\"%s\" host=%s", subject, host
        )
        return {"ok": False, "detail": "no valid recipients", "retryable": False}

    timeout = _timeout()
    try:
        port_int = int(port)
        msg = EmailMessage()
        msg["Subject"] = subject
        if header:
            msg["To"] = header
        msg["From"] = f"{from_name} <{from_addr}>" if from_name else from_addr
        msg.set_content(body)
        if html:
            msg.add_alternative(html, subtype="html")
        for attachment in attachments or ():
            _attach(msg, attachment)
        smtp_cls = smtplib.SMTP_SSL if port_int == 465 else smtplib.SMTP
        with smtp_cls(host, port_int, timeout=timeout) as server:
            if port_int == 587:
                server.starttls()
            if user and password:
                server.login(user, password)
            server.send_message(msg, from_addr, envelope)
        logger.info(
            "[MAIL-OUT] mode=%s to_header=%s envelope=%s subject=\"%s\" attachments=%s host=%s result=sent",
            mode,
            header,
            _stringify_envelope(envelope),
            subject,
            attachment_names,
            host,
        )
        return {"ok": True, "detail": "sent", "retryable": False}
    except (socket.timeout, TimeoutError) as e:
        logger.warning(
            "[MAIL-OUT] mode=%s to_header=%s subject=\"%s\" host=%s result=timeout after %ss",
            mode,
            header,
            subject,
            host,
            timeout,
        )
        return {"ok": False, "detail": f"timeout: {e or 'no response'}", "retryable": True}
    except Exception as e:
        logger.info(
            "[MAIL-OUT] mode=%s to_header=%s envelope=%s subject=\"%s\" host=%s result=%s",
            mode,
            header,
            _stringify_envelope(envelope),
            subject,
            host,
            e,
        )
        return {
            "ok": False,
            "detail": str(e),
            "retryable": isinstance(e, (smtplib.SMTPServerDisconnected, ConnectionError)),
        }
