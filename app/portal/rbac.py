from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.portal.errors import NotAuthenticated
from app.portal.models import User


def user_has_role(user: User | None, *role_keys: str) -> bool:
    if not user or not user.is_active:
        return False
    wanted = set(role_keys)
    return any(role.key in wanted for role in user.roles)


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            raise NotAuthenticated("Authentication required")
        return fn(*args, **kwargs)

    return wrapped


def require_role(*role_keys: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → 401 (API clients re-login on this).
            if not user or not user.is_active:
                raise NotAuthenticated("Authentication required")
            # Authenticated but wrong role → 403
            if not user_has_role(user, *role_keys):
                g.missing_role = ",".join(role_keys)
                abort(403, description="You do not have access to this resource")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
