"""Resolve a scanned badge token to exactly one registrant."""

from __future__ import annotations

import secrets
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..app import db
from ..models import REGISTRANT_COLLECTIONS, Registrant
from ..shared.acl import require_admin
from ..shared.results import (
    EventHubError,
    NotFound,
    OperationResult,
    ValidationFailure,
    storage_failure,
)

SCAN_PATH = "/scan/"


def issue_scan_token() -> str:
    return secrets.token_hex(12)


def build_scan_url(token: str, base_url: str | None = None) -> str:
    """Scan URL stored on a registrant. Changing the base URL orphans old badges."""
    base = base_url if base_url is not None else current_app.config["APP_BASE_URL"]
    return f"{base.rstrip('/')}{SCAN_PATH}{token}"


def _clean_token(token: str | None) -> str:
    value = (token or "").strip()
    if not value:
        raise ValidationFailure("Scan token is empty.")
    if "/" in value:
        raise ValidationFailure("Scan token must not contain '/'.")
    return value


def lookup_scan_identity(scan_url: str) -> Registrant | None:
    for model in REGISTRANT_COLLECTIONS:
        found = (
            db.session.query(model)
            .filter(model.scan_identity == scan_url)
            .one_or_none()
        )
        if found is not None:
            return found
    return None


def find_registrant_for_token(token: str | None, operator: Any) -> Registrant:
    """Return the registrant behind ``token`` or raise.

    Raises PermissionDenied before touching storage, ValidationFailure for an
    empty token, and NotFound when neither collection holds the scan URL.
    """
    require_admin(operator)
    cleaned = _clean_token(token)
    registrant = lookup_scan_identity(build_scan_url(cleaned))
    if registrant is None:
        raise NotFound("No registrant matches this badge.", token=cleaned)
    return registrant


def resolve_scan_token(token: str | None, operator: Any) -> OperationResult:
    try:
        registrant = find_registrant_for_token(token, operator)
    except EventHubError as exc:
        current_app.logger.info("[SCAN] resolve token=%s result=%s", token, exc.code)
        return OperationResult.fail(exc)
    except SQLAlchemyError as exc:
        current_app.logger.exception("[SCAN] resolve token=%s failed", token)
        return OperationResult.fail(storage_failure(exc, "look up badge"))
    return OperationResult.ok(registrant.to_dict())
