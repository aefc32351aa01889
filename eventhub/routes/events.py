from __future__ import annotations

from flask import Blueprint, Response, request

from ..services import events as event_service
from ..services.certificates import distribute_certificates
from ..services.eligibility import select_eligible_registrants
from ..services.reminders import send_event_reminders
from ..shared.rbac import admin_required
from ..shared.responses import json_result, payload

bp = Blueprint("events", __name__, url_prefix="/events")


@bp.get("")
def index():
    return json_result(event_service.list_events())


@bp.post("")
@admin_required
def create(current_user):
    data = payload()
    return json_result(
        event_service.create_event(
            data.get("event_name"),
            data.get("event_date"),
            data.get("motive"),
            data.get("registration_fee"),
        )
    )


@bp.get("/<int:event_id>")
def show(event_id: int):
    return json_result(event_service.get_event(event_id))


@bp.delete("/<int:event_id>")
@admin_required
def delete(event_id: int, current_user):
    return json_result(event_service.delete_event(event_id))


@bp.get("/<int:event_id>/attendance")
@admin_required
def attendance(event_id: int, current_user):
    return json_result(event_service.event_attendance_report(event_id))


@bp.get("/<int:event_id>/eligible")
@admin_required
def eligible(event_id: int, current_user):
    return json_result(select_eligible_registrants(event_id))


@bp.post("/<int:event_id>/certificates")
@admin_required
def certificates(event_id: int, current_user):
    resend = request.args.get("resend") in {"1", "true", "yes"}
    return json_result(distribute_certificates(event_id, resend=resend))


@bp.post("/<int:event_id>/reminders")
@admin_required
def reminders(event_id: int, current_user):
    return json_result(send_event_reminders(event_id))


@bp.get("/<int:event_id>/poster.png")
@admin_required
def poster(event_id: int, current_user):
    result = event_service.generate_event_poster(event_id)
    if not result.success:
        return json_result(result)
    return Response(result.data, mimetype="image/png")
