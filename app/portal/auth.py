from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from app.portal.audit import record_event
from app.portal.constants import ROLE_CUSTOMER, ROLE_NAMES
from app.portal.db import db_session
from app.portal.errors import Conflict, NotAuthenticated, ServiceError, ValidationError
from app.portal.models import Role, User
from app.portal.rbac import require_login
from app.portal.security import ensure_csrf_token
from app.portal.utils import clean_str, json_ok, request_payload

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_MIN_PASSWORD_LENGTH = 8


class TooManyAttempts(ServiceError):
    status_code = 429


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def user_to_dict(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "roles": user.role_keys,
    }


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/register")
def register():
    payload = request_payload(request)
    email = clean_str(payload.get("email")).lower()
    name = clean_str(payload.get("name")) or None
    password = payload.get("password") or ""

    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters")

    s = db_session()
    if s.query(User).filter(User.email == email).one_or_none():
        raise Conflict("An account with this email already exists")

    role = s.query(Role).filter(Role.key == ROLE_CUSTOMER).one_or_none()
    if not role:
        role = Role(key=ROLE_CUSTOMER, name=ROLE_NAMES[ROLE_CUSTOMER])
        s.add(role)

    user = User(email=email, name=name, password_hash=generate_password_hash(password), is_active=True)
    user.roles.append(role)
    s.add(user)
    s.flush()
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    s.commit()

    session["user_id"] = user.id
    return json_ok(user_to_dict(user), message="Registered successfully", status=201)


@bp.post("/login")
def login():
    payload = request_payload(request)
    email = clean_str(payload.get("email")).lower()
    password = payload.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise TooManyAttempts("Too many login attempts. Please wait 5 minutes.")

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            raise NotAuthenticated("Invalid credentials")

        session["user_id"] = user.id
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        return json_ok(user_to_dict(user), message="Logged in")
    except ServiceError:
        raise
    except Exception:
        current_app.logger.exception("Login crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return json_ok(None, message="Logged out")


@bp.get("/me")
@require_login
def me():
    return json_ok(user_to_dict(g.current_user))


@bp.get("/csrf")
def csrf():
    return json_ok({"csrfToken": ensure_csrf_token()})
