from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.breakroom.models import Base


class BreakroomBlock(Base):
    """A widget on a user's dashboard. x/y/w/h are its default geometry."""

    __tablename__ = "breakroom_blocks"
    __table_args__ = (
        Index("idx_breakroom_blocks_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    block_type: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "chat", "blog", "shortcut"
    content_id: Mapped[int | None] = mapped_column(Integer, nullable=True)  # id of the thing the block shows
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    settings: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    w: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    h: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    positions: Mapped[list["BreakroomBlockPosition"]] = relationship(
        "BreakroomBlockPosition",
        back_populates="block",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class BreakroomBlockPosition(Base):
    """Saved geometry of one block at one column count (breakpoint)."""

    __tablename__ = "breakroom_block_positions"
    __table_args__ = (
        UniqueConstraint("block_id", "col_count", name="uq_breakroom_position_block_cols"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    block_id: Mapped[int] = mapped_column(ForeignKey("breakroom_blocks.id", ondelete="CASCADE"), nullable=False)
    col_count: Mapped[int] = mapped_column(Integer, nullable=False)

    x: Mapped[int] = mapped_column(Integer, nullable=False)
    y: Mapped[int] = mapped_column(Integer, nullable=False)
    w: Mapped[int] = mapped_column(Integer, nullable=False)
    h: Mapped[int] = mapped_column(Integer, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    block: Mapped[BreakroomBlock] = relationship("BreakroomBlock", back_populates="positions")
