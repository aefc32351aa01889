from __future__ import annotations

from flask import Blueprint, request

from ..services import registrants as registrant_service
from ..shared.rbac import admin_required
from ..shared.responses import json_result, payload
from ..shared.results import OperationResult, ValidationFailure

bp = Blueprint("registrants", __name__)


@bp.post("/register/core")
@admin_required
def register_core(current_user):
    data = payload()
    return json_result(
        registrant_service.register_core_member(
            data.get("name"), data.get("email"), data.get("roll_number")
        )
    )


@bp.post("/register/student")
def register_student():
    data = payload()
    return json_result(
        registrant_service.register_student(
            data.get("name"),
            data.get("email"),
            data.get("roll_number"),
            data.get("event_name"),
            university_roll_no=data.get("university_roll_no"),
            branch=data.get("branch"),
            year=data.get("year"),
            phone_number=data.get("phone_number"),
            cgpa=data.get("cgpa"),
            backlogs=data.get("back"),
            summary=data.get("summary"),
            clubs=data.get("clubs"),
            aim=data.get("aim"),
            believe=data.get("believe"),
            expect=data.get("expect"),
            domains=data.get("domain"),
        )
    )


@bp.get("/registrants")
@admin_required
def index(current_user):
    return json_result(registrant_service.list_registrants())


@bp.get("/registrants/lookup")
@admin_required
def lookup(current_user):
    if request.args.get("roll_number"):
        return json_result(
            registrant_service.find_registrant_by_roll_number(request.args["roll_number"])
        )
    if request.args.get("email"):
        return json_result(registrant_service.find_registrant_by_email(request.args["email"]))
    return json_result(
        OperationResult.fail(ValidationFailure("Pass roll_number or email."))
    )


@bp.get("/registrants/<int:registrant_id>")
@admin_required
def show(registrant_id: int, current_user):
    return json_result(registrant_service.get_registrant(registrant_id))


@bp.get("/recruitments")
@admin_required
def recruitments(current_user):
    return json_result(registrant_service.list_recruitments())


@bp.post("/registrants/<int:registrant_id>/review")
@admin_required
def review(registrant_id: int, current_user):
    data = payload()
    flags = {name: data.get(name) for name in registrant_service.REVIEW_FLAGS}
    return json_result(
        registrant_service.review_student(
            registrant_id, data.get("review"), data.get("comment"), **flags
        )
    )
