from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.breakroom.models import Base, User


class Song(Base):
    __tablename__ = "songs"
    __table_args__ = (
        Index("idx_songs_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    genre: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="idea")
    visibility: Mapped[str] = mapped_column(String(32), nullable=False, default="private")  # private, public

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    owner: Mapped[User] = relationship("User", foreign_keys=[user_id], lazy="selectin")
    collaborators: Mapped[list["SongCollaborator"]] = relationship(
        "SongCollaborator",
        back_populates="song",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class SongCollaborator(Base):
    __tablename__ = "song_collaborators"
    __table_args__ = (
        UniqueConstraint("song_id", "user_id", name="uq_song_collaborators_song_user"),
        Index("idx_song_collaborators_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    song_id: Mapped[int] = mapped_column(ForeignKey("songs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="editor")  # editor, viewer
    invited_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    song: Mapped[Song] = relationship("Song", back_populates="collaborators")
    user: Mapped[User] = relationship("User", foreign_keys=[user_id], lazy="selectin")


class Lyric(Base):
    """A lyric section. song_id is NULL for standalone ideas."""

    __tablename__ = "lyrics"
    __table_args__ = (
        Index("idx_lyrics_user_id", "user_id"),
        Index("idx_lyrics_song_id", "song_id", "section_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    song_id: Mapped[int | None] = mapped_column(ForeignKey("songs.id", ondelete="SET NULL"), nullable=True)

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    section_type: Mapped[str] = mapped_column(String(64), nullable=False, default="idea")  # verse, chorus, bridge...
    section_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mood: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="draft")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    author: Mapped[User] = relationship("User", foreign_keys=[user_id], lazy="selectin")
