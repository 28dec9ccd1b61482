from __future__ import annotations

import hmac
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g, request

from app.breakroom.models import User
from app.breakroom.utils import json_error

OWNER = "owner"
EDITOR = "editor"
VIEWER = "viewer"

EDIT_ROLES = frozenset({OWNER, EDITOR})


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Rejects the request with 401 unless load_current_user resolved a user."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return json_error(getattr(g, "auth_error", None) or "Not authenticated", 401)
        return fn(*args, **kwargs)

    return wrapped


def require_api_key(fn: Callable[..., Any]) -> Callable[..., Any]:
    """
    Reporter endpoints: when TEST_API_KEY is configured the X-API-Key header
    must match it; when it is unset the endpoints are open.
    """

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        expected = current_app.config.get("TEST_API_KEY") or ""
        if expected:
            provided = request.headers.get("X-API-Key") or ""
            if not hmac.compare_digest(provided.encode(), expected.encode()):
                return json_error("Invalid API key", 401)
        return fn(*args, **kwargs)

    return wrapped


def resolve_song_role(owner_id: int, visibility: str | None, user_id: int, collab_role: str | None) -> str | None:
    """
    Effective role of user_id on a song, or None when the song is not visible.

    Owner beats collaborator role, which beats the implicit viewer role that
    public songs grant to everybody.
    """
    if owner_id == user_id:
        return OWNER
    if collab_role:
        return collab_role
    if visibility == "public":
        return VIEWER
    return None


def role_can_edit(role: str | None) -> bool:
    return role in EDIT_ROLES
