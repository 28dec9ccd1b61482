"""
Responsive block-layout packer for the breakroom dashboard.

A user's dashboard is rendered at five breakpoints (5, 4, 3, 2 and 1 grid
columns). Positions the user arranged by hand are saved per column count and
always win; every block without a saved position at the requested column count
is packed greedily underneath (or beside) the saved ones, so the grid never
shows two blocks sharing a cell.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from app.breakroom.constants import BREAKPOINT_COLS


@dataclass(frozen=True)
class LayoutBlock:
    """A block's identity and its default (unsaved) geometry in grid cells."""

    id: int
    x: int
    y: int
    w: int
    h: int


@dataclass(frozen=True)
class GridItem:
    i: str
    x: int
    y: int
    w: int
    h: int

    def as_dict(self) -> dict:
        return {"i": self.i, "x": self.x, "y": self.y, "w": self.w, "h": self.h}

    def cells(self) -> set[tuple[int, int]]:
        return {(col, row) for col in range(self.x, self.x + self.w) for row in range(self.y, self.y + self.h)}


# {block_id: {col_count: anything with x, y, w, h}}
Positions = Mapping[int, Mapping[int, Any]]


def layout_for_col_count(blocks: Iterable[LayoutBlock], positions: Positions, col_count: int) -> list[GridItem]:
    """
    Grid items for every block at col_count.

    Saved positions come first, untouched, in input order. Unsaved blocks follow
    in (y, x) order of their defaults, each dropped at the start column that
    lets it sit highest; ties go to the leftmost column.
    """
    if col_count < 1:
        raise ValueError(f"col_count must be positive, got {col_count}")

    saved: list[GridItem] = []
    unsaved: list[LayoutBlock] = []
    for block in blocks:
        pos = (positions.get(block.id) or {}).get(col_count)
        if pos is not None:
            saved.append(GridItem(i=str(block.id), x=pos.x, y=pos.y, w=pos.w, h=pos.h))
        else:
            unsaved.append(block)

    if not unsaved:
        return saved

    heights = [0] * col_count
    for item in saved:
        for col in range(max(item.x, 0), min(item.x + item.w, col_count)):
            heights[col] = max(heights[col], item.y + item.h)

    packed: list[GridItem] = []
    for block in sorted(unsaved, key=lambda b: (b.y, b.x)):
        w = max(1, min(block.w, col_count))
        best_x, best_y = 0, max(heights[:w])
        for x in range(1, col_count - w + 1):
            y = max(heights[x : x + w])
            if y < best_y:
                best_x, best_y = x, y
        for col in range(best_x, best_x + w):
            heights[col] = best_y + block.h
        packed.append(GridItem(i=str(block.id), x=best_x, y=best_y, w=w, h=block.h))

    return saved + packed


def build_responsive_layouts(blocks: Iterable[LayoutBlock], positions: Positions) -> dict[str, list[GridItem]]:
    block_list = list(blocks)
    return {bp: layout_for_col_count(block_list, positions, cols) for bp, cols in BREAKPOINT_COLS.items()}
