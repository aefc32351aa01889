from __future__ import annotations

from flask import Blueprint, current_app, jsonify, session as flask_session
from sqlalchemy import func

from ..app import db
from ..models import User
from ..shared.responses import payload

bp = Blueprint("auth", __name__)


@bp.post("/login")
def login():
    data = payload()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    user = (
        db.session.query(User).filter(func.lower(User.email) == email).one_or_none()
        if email
        else None
    )
    if not user or not user.check_password(password):
        current_app.logger.info("[AUTH-FAIL] email=%s", email)
        return (
            jsonify(
                {
                    "success": False,
                    "error": {"code": "PermissionDenied", "message": "Invalid credentials"},
                }
            ),
            401,
        )
    flask_session.clear()
    flask_session["user_id"] = user.id
    current_app.logger.info("[AUTH] login user=%s admin=%s", user.id, user.is_admin)
    return jsonify({"success": True, "data": {"id": user.id, "is_admin": user.is_admin}})


@bp.post("/logout")
def logout():
    flask_session.clear()
    return jsonify({"success": True})
