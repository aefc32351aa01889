from __future__ import annotations

from typing import Any

from .results import PermissionDenied


def is_authenticated(user: Any) -> bool:
    return bool(user and getattr(user, "id", None))


def is_admin(user: Any) -> bool:
    return bool(is_authenticated(user) and getattr(user, "is_admin", False))


def require_admin(operator: Any) -> None:
    """Raise PermissionDenied unless ``operator`` is a signed-in admin."""
    if not is_authenticated(operator):
        raise PermissionDenied("Sign in as an operator to continue.")
    if not is_admin(operator):
        raise PermissionDenied("Operator lacks admin privilege.")
