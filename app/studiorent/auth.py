from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from app.studiorent.audit import record_event
from app.studiorent.constants import ROLE_STUDENT
from app.studiorent.db import db_session
from app.studiorent.errors import ApiError, BadRequest, Conflict, Unauthorized
from app.studiorent.models import Role, User
from app.studiorent.modules.students.service import create_student, student_for_user, validate_student_payload
from app.studiorent.rbac import is_staff
from app.studiorent.security import ensure_csrf_token
from app.studiorent.utils import clean_str, json_body, utcnow

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_MIN_PASSWORD_LENGTH = 6


def _check_rate_limit(ip: str) -> bool:
    now = utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(utcnow())


def _password(payload: dict) -> str:
    password = payload.get("password")
    return password if isinstance(password, str) else ""


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz")):
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


def _session_payload(user: User | None) -> dict:
    student = student_for_user(db_session(), user) if user else None
    return {
        "user": {"id": user.id, "email": user.email, "roles": sorted(r.key for r in user.roles)} if user else None,
        "studentId": student.stdn_id if student else None,
        "isStaff": is_staff(user),
        "csrf_token": ensure_csrf_token(),
    }


def _student_role(s) -> Role:
    role = s.query(Role).filter(Role.key == ROLE_STUDENT).one_or_none()
    if role is None:
        role = Role(key=ROLE_STUDENT, name="Student")
        s.add(role)
    return role


@bp.post("/signup")
def signup():
    payload = json_body()
    email = (clean_str(payload.get("email")) or "").lower()
    password = _password(payload)

    errors = []
    if not email or "@" not in email:
        errors.append("A valid email is required.")
    if len(password) < _MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
    errors.extend(validate_student_payload(payload))
    if errors:
        raise BadRequest(errors[0])

    s = db_session()
    if s.query(User).filter(User.email == email).one_or_none() is not None:
        raise Conflict("An account with this email already exists.")

    # Account and profile land together or not at all.
    try:
        user = User(email=email, password_hash=generate_password_hash(password), is_active=True)
        user.roles.append(_student_role(s))
        s.add(user)
        s.flush()
        student = create_student(s, payload, user=user)
        record_event(s, actor=user, action="auth.signup", entity_type="User", entity_id=str(user.id))
        s.commit()
    except ApiError:
        s.rollback()
        raise
    except IntegrityError:
        s.rollback()
        current_app.logger.warning("Signup race on email=%s stdn_id=%s", email, payload.get("stdn_id"))
        raise Conflict("An account with this email or student ID already exists.")

    session["user_id"] = user.id
    current_app.logger.info("Student %s signed up (user_id=%s)", student.stdn_id, user.id)
    body = _session_payload(user)
    body["message"] = "Sign up successful!"
    return jsonify(body), 201


@bp.post("/login")
def login():
    payload = json_body()
    email = (clean_str(payload.get("email")) or "").lower()
    password = _password(payload)
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise ApiError("Too many login attempts. Please wait 5 minutes.", status_code=429)

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
            raise Unauthorized("Invalid credentials.")

        session["user_id"] = user.id
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        return jsonify(_session_payload(user))
    except ApiError:
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
    return jsonify({"ok": True})


@bp.get("/session")
def current_session():
    return jsonify(_session_payload(getattr(g, "current_user", None)))
