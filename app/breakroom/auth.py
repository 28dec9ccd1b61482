from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import jwt
from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from app.breakroom.audit import record_event
from app.breakroom.db import db_session
from app.breakroom.models import User
from app.breakroom.rbac import require_auth
from app.breakroom.utils import clean_str, json_error, json_payload

bp = Blueprint("auth", __name__)

TOKEN_COOKIE = "jwtToken"
REFRESH_HEADER = "X-New-Token"
JWT_ALGORITHM = "HS256"

_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


# ---------- Tokens ----------
def issue_token(handle: str) -> str:
    ttl = timedelta(hours=int(current_app.config.get("JWT_TTL_HOURS") or 48))
    payload = {"username": handle, "exp": datetime.now(timezone.utc) + ttl}
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Raises jwt.InvalidTokenError (incl. ExpiredSignatureError) on a bad token."""
    return jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=[JWT_ALGORITHM])


def extract_token() -> str | None:
    """Cookie for web clients, bearer header for mobile clients."""
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def set_token_cookie(resp: Response, token: str) -> None:
    ttl_hours = int(current_app.config.get("JWT_TTL_HOURS") or 48)
    resp.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=ttl_hours * 60 * 60,
        domain=current_app.config.get("COOKIE_DOMAIN") or None,
        path="/",
        httponly=False,
        secure=bool(current_app.config.get("JWT_COOKIE_SECURE")),
        samesite="Lax",
    )


def load_current_user() -> None:
    """
    Resolves g.current_user from the request token and records why it failed
    (g.auth_error) so require_auth can answer with the right message.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.auth_error = "Not authenticated"
    g.token_payload = None

    token = extract_token()
    if not token:
        return
    try:
        payload = decode_token(token)
    except jwt.InvalidTokenError:
        g.auth_error = "Invalid token"
        return
    g.token_payload = payload

    handle = payload.get("username")
    if not handle:
        g.auth_error = "Invalid token"
        return
    try:
        s = db_session()
        user = s.query(User).filter(User.handle == handle).one_or_none()
    except SQLAlchemyError as e:
        current_app.logger.error("load_current_user DB error (request_id=%s): %s", g.request_id, e)
        g.auth_error = "Invalid token"
        return
    if not user or not user.is_active:
        g.auth_error = "User not found"
        return
    g.current_user = user
    g.auth_error = None


def refresh_session(resp: Response) -> Response:
    """
    Sliding session: any request carrying a valid token gets a fresh one,
    as a cookie (web) and in the X-New-Token header (mobile).
    """
    payload = getattr(g, "token_payload", None)
    if not payload or getattr(g, "skip_session_refresh", False):
        return resp
    handle = payload.get("username")
    if not handle:
        return resp
    new_token = issue_token(handle)
    set_token_cookie(resp, new_token)
    resp.headers[REFRESH_HEADER] = new_token
    return resp


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "handle": user.handle,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "photo_path": user.photo_path,
        "bio": user.bio,
    }


def _token_response(user: User, status: int = 200) -> tuple[Response, int]:
    token = issue_token(user.handle)
    resp = jsonify({"token": token, "user": serialize_user(user)})
    set_token_cookie(resp, token)
    # the fresh login token already went out; don't overwrite it with a refresh
    g.skip_session_refresh = True
    return resp, status


# ---------- Endpoints ----------
@bp.post("/signup")
def signup():
    payload = json_payload()
    handle = clean_str(payload.get("handle"))
    email = (clean_str(payload.get("email")) or "").lower()
    password = payload.get("password") or ""

    if not handle or not email or not password:
        return json_error("Handle, email and password are required", 400)

    s = db_session()
    taken = s.query(User).filter(or_(User.handle == handle, User.email == email)).first()
    if taken:
        field = "handle" if taken.handle == handle else "email"
        return json_error(f"That {field} is already taken", 400)

    user = User(
        handle=handle,
        email=email,
        password_hash=generate_password_hash(password),
        first_name=clean_str(payload.get("first_name")),
        last_name=clean_str(payload.get("last_name")),
        is_active=True,
    )
    s.add(user)
    try:
        s.flush()
    except IntegrityError:
        s.rollback()
        return json_error("That handle or email is already taken", 400)
    record_event(s, actor=user, action="auth.signup", entity_type="User", entity_id=str(user.id))
    s.commit()
    current_app.logger.info("New user signed up: handle=%s id=%s", user.handle, user.id)
    return _token_response(user, 201)


@bp.post("/login")
def login():
    payload = json_payload()
    ident = clean_str(payload.get("handle") or payload.get("username") or payload.get("email")) or ""
    password = payload.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return json_error("Too many login attempts. Please wait 5 minutes.", 429)

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(or_(User.handle == ident, User.email == ident.lower())).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=ident,
            reason="Invalid credentials",
        )
        s.commit()
        return json_error("Invalid credentials", 401)

    _login_attempts[ip].clear()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return _token_response(user)


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    resp = jsonify({"message": "Logged out"})
    resp.delete_cookie(TOKEN_COOKIE, path="/", domain=current_app.config.get("COOKIE_DOMAIN") or None)
    g.skip_session_refresh = True
    return resp


@bp.get("/me")
@require_auth
def me():
    return jsonify({"user": serialize_user(g.current_user)})
