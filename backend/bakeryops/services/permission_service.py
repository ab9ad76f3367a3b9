# Overview: Role based capability checks consumed by routes and services.

from __future__ import annotations

from flask import current_app

from ..models import User
from ..permissions import DEFAULT_ROLE_PERMISSIONS, validate_permission_code
from ..validation import PermissionDeniedError


def get_user_permissions(user: User | None) -> frozenset[str]:
    if user is None or not user.is_active:
        return frozenset()
    return DEFAULT_ROLE_PERMISSIONS.get(user.role, frozenset())


def user_has_permission(user: User | None, permission_code: str) -> bool:
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")
    return permission_code in get_user_permissions(user)


def require_permission(user: User | None, permission_code: str) -> None:
    """Raise PermissionDeniedError (and log it) when the user lacks a permission."""
    if user_has_permission(user, permission_code):
        return
    current_app.logger.warning(
        "Permission denied: user=%s permission=%s",
        user.username if user else None,
        permission_code,
    )
    raise PermissionDeniedError(
        f"Missing permission {permission_code}",
        details={"required_permission": permission_code},
    )


def can_override_closed_day(user: User | None) -> bool:
    return user_has_permission(user, "OVERRIDE_CLOSED_DAY")


def can_reopen_day(user: User | None) -> bool:
    return user_has_permission(user, "REOPEN_DAY")
