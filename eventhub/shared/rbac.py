from functools import wraps

from flask import jsonify, session

from ..app import db
from ..models import User
from .acl import is_admin


def current_operator() -> User | None:
    user_id = session.get("user_id")
    if not user_id:
        return None
    return db.session.get(User, user_id)


def admin_required(fn):
    """Allow access to signed-in admin operators only."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = current_operator()
        if not user:
            return (
                jsonify(
                    {
                        "success": False,
                        "error": {"code": "PermissionDenied", "message": "Sign in required."},
                    }
                ),
                401,
            )
        if not is_admin(user):
            return (
                jsonify(
                    {
                        "success": False,
                        "error": {"code": "PermissionDenied", "message": "Admin only."},
                    }
                ),
                403,
            )
        return fn(*args, **kwargs, current_user=user)

    return wrapper
