from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify

from app.breakroom.db import db_session
from app.breakroom.models import User
from app.breakroom.modules.breakroom.service import (
    LayoutError,
    create_block,
    get_user_block,
    parse_layout_items,
    responsive_layouts,
    save_default_layout,
    save_positions,
    serialize_block,
    serialize_positions,
    update_block,
    user_blocks,
)
from app.breakroom.rbac import require_auth
from app.breakroom.utils import json_error, json_payload

bp = Blueprint("breakroom", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Layout ----------
@bp.get("/layout")
@require_auth
def layout_get():
    s = db_session()
    blocks = user_blocks(s, _current_user())
    return jsonify({
        "blocks": [serialize_block(b) for b in blocks],
        "positions": serialize_positions(blocks),
    })


@bp.get("/layouts")
@require_auth
def layouts_get():
    s = db_session()
    blocks = user_blocks(s, _current_user())
    layouts = responsive_layouts(blocks)
    return jsonify({
        "layouts": {bp_name: [item.as_dict() for item in items] for bp_name, items in layouts.items()},
    })


@bp.put("/layout/<int:col_count>")
@require_auth
def layout_save_for_cols(col_count: int):
    s = db_session()
    u = _current_user()
    payload = json_payload()
    try:
        items = parse_layout_items(payload.get("items"), col_count)
        saved = save_positions(s, u, col_count, items)
    except LayoutError as e:
        return json_error(str(e), 400)
    except LookupError as e:
        return json_error(str(e), 404)
    s.commit()
    current_app.logger.debug("Saved %s breakroom positions (user=%s cols=%s)", len(saved), u.id, col_count)
    return jsonify({"message": "Layout saved", "saved": len(saved)})


@bp.put("/layout")
@require_auth
def layout_save_legacy():
    s = db_session()
    payload = json_payload()
    try:
        items = parse_layout_items(payload.get("blocks"))
    except LayoutError as e:
        return json_error(str(e), 400)
    updated = save_default_layout(s, _current_user(), items)
    s.commit()
    return jsonify({"message": "Layout saved", "updated": updated})


# ---------- Blocks ----------
@bp.post("/blocks")
@require_auth
def block_create():
    s = db_session()
    try:
        block = create_block(s, _current_user(), json_payload())
    except LayoutError as e:
        return json_error(str(e), 400)
    s.commit()
    return jsonify({"block": serialize_block(block)}), 201


@bp.put("/blocks/<int:block_id>")
@require_auth
def block_update(block_id: int):
    s = db_session()
    block = get_user_block(s, _current_user(), block_id)
    if not block:
        return json_error("Block not found", 404)
    try:
        update_block(block, json_payload())
    except LayoutError as e:
        return json_error(str(e), 400)
    s.commit()
    return jsonify({"block": serialize_block(block)})


@bp.delete("/blocks/<int:block_id>")
@require_auth
def block_delete(block_id: int):
    s = db_session()
    block = get_user_block(s, _current_user(), block_id)
    if not block:
        return json_error("Block not found", 404)
    s.delete(block)
    s.commit()
    return jsonify({"message": "Block deleted successfully"})
