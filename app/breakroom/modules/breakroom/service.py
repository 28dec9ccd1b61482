from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.breakroom.constants import COL_COUNTS, DEFAULT_BLOCK_H, DEFAULT_BLOCK_W
from app.breakroom.modules.breakroom.layout import GridItem, LayoutBlock, build_responsive_layouts
from app.breakroom.modules.breakroom.models import BreakroomBlock, BreakroomBlockPosition
from app.breakroom.utils import clean_str, isoformat, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.breakroom.models import User


class LayoutError(ValueError):
    """Rejected layout payload; the message is safe to show to the client."""


def serialize_block(block: BreakroomBlock) -> dict:
    return {
        "id": block.id,
        "block_type": block.block_type,
        "content_id": block.content_id,
        "title": block.title,
        "settings": block.settings,
        "x": block.x,
        "y": block.y,
        "w": block.w,
        "h": block.h,
        "created_at": isoformat(block.created_at),
        "updated_at": isoformat(block.updated_at),
    }


def user_blocks(s: "Session", user: "User") -> list[BreakroomBlock]:
    return (
        s.query(BreakroomBlock)
        .filter(BreakroomBlock.user_id == user.id)
        .order_by(BreakroomBlock.y.asc(), BreakroomBlock.x.asc(), BreakroomBlock.id.asc())
        .all()
    )


def get_user_block(s: "Session", user: "User", block_id: int) -> BreakroomBlock | None:
    return (
        s.query(BreakroomBlock)
        .filter(BreakroomBlock.id == block_id, BreakroomBlock.user_id == user.id)
        .one_or_none()
    )


def positions_by_block(blocks: list[BreakroomBlock]) -> dict[int, dict[int, BreakroomBlockPosition]]:
    out: dict[int, dict[int, BreakroomBlockPosition]] = {}
    for block in blocks:
        for pos in block.positions:
            out.setdefault(block.id, {})[pos.col_count] = pos
    return out


def serialize_positions(blocks: list[BreakroomBlock]) -> dict[str, dict[str, dict]]:
    # JSON object keys are strings on the wire
    return {
        str(block_id): {
            str(cols): {"x": p.x, "y": p.y, "w": p.w, "h": p.h} for cols, p in by_cols.items()
        }
        for block_id, by_cols in positions_by_block(blocks).items()
    }


def responsive_layouts(blocks: list[BreakroomBlock]) -> dict[str, list[GridItem]]:
    layout_blocks = [LayoutBlock(id=b.id, x=b.x, y=b.y, w=b.w, h=b.h) for b in blocks]
    return build_responsive_layouts(layout_blocks, positions_by_block(blocks))


def _coord(item: dict, key: str) -> int:
    value = item.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise LayoutError(f"Layout item field '{key}' must be an integer")
    return value


def parse_layout_items(raw: Any, col_count: int | None = None) -> list[dict]:
    """
    Validates [{id, x, y, w, h}, ...]. With col_count, every item must also fit
    inside that many columns.
    """
    if not isinstance(raw, list):
        raise LayoutError("Items array is required")
    items: list[dict] = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise LayoutError("Each layout item must be an object")
        item = {k: _coord(entry, k) for k in ("id", "x", "y", "w", "h")}
        if item["x"] < 0 or item["y"] < 0:
            raise LayoutError("Layout coordinates cannot be negative")
        if item["w"] < 1 or item["h"] < 1:
            raise LayoutError("Layout sizes must be at least 1")
        if col_count is not None and item["x"] + item["w"] > col_count:
            raise LayoutError(f"Block {item['id']} does not fit in {col_count} columns")
        items.append(item)
    return items


def save_positions(s: "Session", user: "User", col_count: int, items: list[dict]) -> list[BreakroomBlockPosition]:
    """
    Upserts the saved geometry of the given blocks at col_count.
    Raises LookupError if any id is not one of the user's blocks.
    """
    if col_count not in COL_COUNTS:
        raise LayoutError(f"Column count must be one of: {', '.join(str(c) for c in sorted(COL_COUNTS))}")

    ids = {item["id"] for item in items}
    blocks = {}
    if ids:
        blocks = {
            b.id: b
            for b in s.query(BreakroomBlock)
            .filter(BreakroomBlock.user_id == user.id, BreakroomBlock.id.in_(ids))
            .all()
        }
    missing = ids - set(blocks)
    if missing:
        raise LookupError(f"Block(s) not found: {', '.join(str(i) for i in sorted(missing))}")

    saved: list[BreakroomBlockPosition] = []
    for item in items:
        block = blocks[item["id"]]
        pos = next((p for p in block.positions if p.col_count == col_count), None)
        if pos is None:
            pos = BreakroomBlockPosition(col_count=col_count, x=0, y=0, w=1, h=1)
            block.positions.append(pos)
        pos.x, pos.y, pos.w, pos.h = item["x"], item["y"], item["w"], item["h"]
        saved.append(pos)
    return saved


def save_default_layout(s: "Session", user: "User", items: list[dict]) -> int:
    """Legacy single-layout save: overwrites block defaults. Unknown ids are skipped."""
    by_id = {b.id: b for b in user_blocks(s, user)}
    updated = 0
    for item in items:
        block = by_id.get(item["id"])
        if block is None:
            continue
        block.x, block.y, block.w, block.h = item["x"], item["y"], item["w"], item["h"]
        updated += 1
    return updated


_GEOMETRY_MIN = {"x": 0, "y": 0, "w": 1, "h": 1}


def _geometry(payload: dict, key: str, default: int | None = None) -> int:
    raw = payload.get(key)
    if default is not None and (raw is None or raw == ""):
        return default
    value = parse_int(raw)
    minimum = _GEOMETRY_MIN[key]
    if value is None or value < minimum:
        raise LayoutError(f"Block field '{key}' must be an integer >= {minimum}")
    return value


def create_block(s: "Session", user: "User", payload: dict) -> BreakroomBlock:
    block_type = clean_str(payload.get("block_type"))
    if not block_type:
        raise LayoutError("Block type is required")
    settings = payload.get("settings")
    block = BreakroomBlock(
        user_id=user.id,
        block_type=block_type,
        content_id=parse_int(payload.get("content_id")),
        title=clean_str(payload.get("title")),
        settings=settings if isinstance(settings, dict) else None,
        x=_geometry(payload, "x", 0),
        y=_geometry(payload, "y", 0),
        w=_geometry(payload, "w", DEFAULT_BLOCK_W),
        h=_geometry(payload, "h", DEFAULT_BLOCK_H),
    )
    s.add(block)
    s.flush()
    return block


def update_block(block: BreakroomBlock, payload: dict) -> BreakroomBlock:
    """Partial update: only keys present in the payload change."""
    if "title" in payload:
        block.title = clean_str(payload.get("title"))
    if "settings" in payload:
        settings = payload.get("settings")
        block.settings = settings if isinstance(settings, dict) else None
    if "content_id" in payload:
        block.content_id = parse_int(payload.get("content_id"))
    if "block_type" in payload:
        block_type = clean_str(payload.get("block_type"))
        if not block_type:
            raise LayoutError("Block type cannot be empty")
        block.block_type = block_type
    for key in _GEOMETRY_MIN:
        if key in payload:
            setattr(block, key, _geometry(payload, key))
    return block
