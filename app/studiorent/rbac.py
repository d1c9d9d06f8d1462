from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.studiorent.constants import ROLE_ADMIN, ROLE_STAFF
from app.studiorent.errors import Forbidden, Unauthorized
from app.studiorent.models import User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def is_staff(user: User | None) -> bool:
    if not user or not user.is_active:
        return False
    return user.has_role(ROLE_STAFF) or user.has_role(ROLE_ADMIN)


def current_user() -> User:
    u: User | None = getattr(g, "current_user", None)
    if not u or not u.is_active:
        raise Unauthorized("Login required.")
    return u


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_user()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = current_user()
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                raise Forbidden(f"Missing permission: {permission_key}")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
