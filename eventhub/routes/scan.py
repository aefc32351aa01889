from __future__ import annotations

from flask import Blueprint

from ..services.attendance import mark_attendance
from ..services.identity import resolve_scan_token
from ..shared.rbac import current_operator
from ..shared.responses import json_result

bp = Blueprint("scan", __name__, url_prefix="/scan")


@bp.get("/<token>")
def lookup(token: str):
    return json_result(resolve_scan_token(token, current_operator()))


@bp.post("/<token>")
def mark(token: str):
    return json_result(mark_attendance(token, current_operator()))
