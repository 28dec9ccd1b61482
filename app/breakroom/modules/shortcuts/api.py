from __future__ import annotations

from flask import Blueprint, g, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.breakroom.db import db_session
from app.breakroom.models import User
from app.breakroom.modules.shortcuts.models import UserShortcut
from app.breakroom.rbac import require_auth
from app.breakroom.utils import clean_str, isoformat, json_error, json_payload

bp = Blueprint("shortcuts", __name__)

DUPLICATE = "A shortcut for this URL already exists"


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def serialize_shortcut(sc: UserShortcut) -> dict:
    return {
        "id": sc.id,
        "name": sc.name,
        "url": sc.url,
        "icon": sc.icon,
        "sort_order": sc.sort_order,
        "created_at": isoformat(sc.created_at),
    }


@bp.get("/", strict_slashes=False)
@require_auth
def shortcuts_list():
    s = db_session()
    rows = (
        s.query(UserShortcut)
        .filter(UserShortcut.user_id == _current_user().id)
        .order_by(UserShortcut.sort_order.asc(), UserShortcut.created_at.asc(), UserShortcut.id.asc())
        .all()
    )
    return jsonify({"shortcuts": [serialize_shortcut(sc) for sc in rows]})


@bp.get("/check")
@require_auth
def shortcut_check():
    url = (request.args.get("url") or "").strip()
    if not url:
        return json_error("URL parameter is required", 400)
    s = db_session()
    sc = (
        s.query(UserShortcut)
        .filter(UserShortcut.user_id == _current_user().id, UserShortcut.url == url)
        .one_or_none()
    )
    return jsonify({
        "exists": sc is not None,
        "shortcut": {"id": sc.id, "name": sc.name, "url": sc.url} if sc else None,
    })


@bp.post("/", strict_slashes=False)
@require_auth
def shortcut_create():
    payload = json_payload()
    name = clean_str(payload.get("name"))
    url = clean_str(payload.get("url"))
    if not name:
        return json_error("Name is required", 400)
    if not url:
        return json_error("URL is required", 400)

    s = db_session()
    u = _current_user()
    exists = s.query(UserShortcut.id).filter(UserShortcut.user_id == u.id, UserShortcut.url == url).first()
    if exists:
        return json_error(DUPLICATE, 400)

    max_order = s.query(func.max(UserShortcut.sort_order)).filter(UserShortcut.user_id == u.id).scalar()
    sc = UserShortcut(
        user_id=u.id,
        name=name,
        url=url,
        icon=clean_str(payload.get("icon")),
        sort_order=(max_order or 0) + 1,
    )
    s.add(sc)
    try:
        s.commit()
    except IntegrityError:
        s.rollback()
        return json_error(DUPLICATE, 400)
    return jsonify({"shortcut": serialize_shortcut(sc)}), 201


@bp.delete("/by-url")
@require_auth
def shortcut_delete_by_url():
    url = clean_str(json_payload().get("url"))
    if not url:
        return json_error("URL is required", 400)
    s = db_session()
    deleted = (
        s.query(UserShortcut)
        .filter(UserShortcut.user_id == _current_user().id, UserShortcut.url == url)
        .delete(synchronize_session=False)
    )
    if not deleted:
        return json_error("Shortcut not found", 404)
    s.commit()
    return jsonify({"message": "Shortcut deleted successfully"})


@bp.delete("/<int:shortcut_id>")
@require_auth
def shortcut_delete(shortcut_id: int):
    s = db_session()
    sc = s.get(UserShortcut, shortcut_id)
    if not sc or sc.user_id != _current_user().id:
        return json_error("Shortcut not found", 404)
    s.delete(sc)
    s.commit()
    return jsonify({"message": "Shortcut deleted successfully"})
