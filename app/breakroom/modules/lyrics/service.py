from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func

from app.breakroom.audit import record_event
from app.breakroom.constants import COLLABORATOR_ROLES, SONG_VISIBILITIES
from app.breakroom.models import User
from app.breakroom.modules.lyrics.models import Lyric, Song, SongCollaborator
from app.breakroom.rbac import OWNER, resolve_song_role, role_can_edit
from app.breakroom.utils import clean_str, isoformat, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class LyricsError(ValueError):
    """Business-rule rejection; carries the HTTP status to answer with."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


# ---------- Access ----------
def song_access(s: "Session", song_id: int | None, user: User) -> tuple[Song | None, str | None]:
    """(song, role) when the user may see the song, else (None, None)."""
    if song_id is None:
        return None, None
    song = s.get(Song, song_id)
    if song is None:
        return None, None
    collab_role = next((c.role for c in song.collaborators if c.user_id == user.id), None)
    role = resolve_song_role(song.user_id, song.visibility, user.id, collab_role)
    if role is None:
        return None, None
    return song, role


def can_edit_song(s: "Session", song_id: int | None, user: User) -> bool:
    _song, role = song_access(s, song_id, user)
    return role_can_edit(role)


# ---------- Serialization ----------
def serialize_song(song: Song, role: str | None = None, lyric_count: int | None = None) -> dict:
    owner = song.owner
    out = {
        "id": song.id,
        "user_id": song.user_id,
        "title": song.title,
        "description": song.description,
        "genre": song.genre,
        "status": song.status,
        "visibility": song.visibility,
        "created_at": isoformat(song.created_at),
        "updated_at": isoformat(song.updated_at),
        "owner_handle": owner.handle if owner else None,
        "owner_first_name": owner.first_name if owner else None,
        "owner_last_name": owner.last_name if owner else None,
    }
    if role is not None:
        out["role"] = role
    if lyric_count is not None:
        out["lyric_count"] = lyric_count
    return out


def serialize_lyric(lyric: Lyric) -> dict:
    author = lyric.author
    return {
        "id": lyric.id,
        "user_id": lyric.user_id,
        "song_id": lyric.song_id,
        "title": lyric.title,
        "content": lyric.content,
        "section_type": lyric.section_type,
        "section_order": lyric.section_order,
        "mood": lyric.mood,
        "notes": lyric.notes,
        "status": lyric.status,
        "created_at": isoformat(lyric.created_at),
        "updated_at": isoformat(lyric.updated_at),
        "author_handle": author.handle if author else None,
        "author_first_name": author.first_name if author else None,
    }


def serialize_collaborator(collab: SongCollaborator) -> dict:
    u = collab.user
    return {
        "song_id": collab.song_id,
        "user_id": collab.user_id,
        "role": collab.role,
        "invited_by": collab.invited_by,
        "handle": u.handle if u else None,
        "first_name": u.first_name if u else None,
        "last_name": u.last_name if u else None,
    }


# ---------- Songs ----------
def list_songs(s: "Session", user: User) -> list[dict]:
    """Songs the user owns plus songs they collaborate on, most recently updated first."""
    owned = s.query(Song).filter(Song.user_id == user.id).all()
    collab_rows = (
        s.query(Song, SongCollaborator.role)
        .join(SongCollaborator, SongCollaborator.song_id == Song.id)
        .filter(SongCollaborator.user_id == user.id)
        .all()
    )
    entries: list[tuple[Song, str]] = [(song, OWNER) for song in owned]
    entries.extend((song, role) for song, role in collab_rows if song.user_id != user.id)

    song_ids = [song.id for song, _ in entries]
    counts: dict[int, int] = {}
    if song_ids:
        counts = dict(
            s.query(Lyric.song_id, func.count(Lyric.id))
            .filter(Lyric.song_id.in_(song_ids))
            .group_by(Lyric.song_id)
            .all()
        )
    entries.sort(key=lambda e: (e[0].updated_at, e[0].id), reverse=True)
    return [serialize_song(song, role, counts.get(song.id, 0)) for song, role in entries]


def song_lyrics(s: "Session", song_id: int) -> list[Lyric]:
    return (
        s.query(Lyric)
        .filter(Lyric.song_id == song_id)
        .order_by(Lyric.section_order.is_(None), Lyric.section_order.asc(), Lyric.created_at.asc(), Lyric.id.asc())
        .all()
    )


def _song_fields(payload: dict) -> dict:
    title = clean_str(payload.get("title"))
    if not title:
        raise LyricsError("Title is required")
    visibility = clean_str(payload.get("visibility")) or "private"
    if visibility not in SONG_VISIBILITIES:
        raise LyricsError(f"Visibility must be one of: {', '.join(SONG_VISIBILITIES)}")
    return {
        "title": title,
        "description": clean_str(payload.get("description")),
        "genre": clean_str(payload.get("genre")),
        "status": clean_str(payload.get("status")) or "idea",
        "visibility": visibility,
    }


def create_song(s: "Session", user: User, payload: dict) -> Song:
    song = Song(user_id=user.id, **_song_fields(payload))
    song.owner = user
    s.add(song)
    s.flush()
    return song


def update_song(song: Song, payload: dict) -> Song:
    for key, value in _song_fields(payload).items():
        setattr(song, key, value)
    return song


def delete_song(s: "Session", song: Song, user: User) -> None:
    """Owner-only. Lyrics survive as standalone lyrics of their authors."""
    s.query(Lyric).filter(Lyric.song_id == song.id).update({Lyric.song_id: None}, synchronize_session=False)
    record_event(
        s,
        actor=user,
        action="song.delete",
        entity_type="Song",
        entity_id=str(song.id),
        metadata={"title": song.title},
    )
    s.delete(song)


# ---------- Collaborators ----------
def add_collaborator(s: "Session", song: Song, owner: User, handle: str | None, role: str | None) -> SongCollaborator:
    role = clean_str(role) or "editor"
    if role not in COLLABORATOR_ROLES:
        raise LyricsError(f"Role must be one of: {', '.join(COLLABORATOR_ROLES)}")
    handle = clean_str(handle)
    target = s.query(User).filter(User.handle == handle).one_or_none() if handle else None
    if target is None:
        raise LyricsError("User not found", 404)
    if target.id == owner.id:
        raise LyricsError("Cannot add yourself as a collaborator")

    collab = next((c for c in song.collaborators if c.user_id == target.id), None)
    if collab is None:
        collab = SongCollaborator(user_id=target.id, role=role, invited_by=owner.id)
        collab.user = target
        song.collaborators.append(collab)
    else:
        collab.role = role
    s.flush()
    record_event(
        s,
        actor=owner,
        action="song.collaborator_set",
        entity_type="Song",
        entity_id=str(song.id),
        metadata={"collaborator": target.handle, "role": role},
    )
    return collab


def remove_collaborator(s: "Session", song: Song, owner: User, user_id: int) -> bool:
    collab = next((c for c in song.collaborators if c.user_id == user_id), None)
    if collab is None:
        return False
    song.collaborators.remove(collab)
    record_event(
        s,
        actor=owner,
        action="song.collaborator_remove",
        entity_type="Song",
        entity_id=str(song.id),
        metadata={"user_id": user_id},
    )
    return True


# ---------- Lyrics ----------
def can_edit_lyric(s: "Session", lyric: Lyric, user: User) -> bool:
    """Authors can always edit; song owners and editors can edit the song's lyrics."""
    if lyric.user_id == user.id:
        return True
    return lyric.song_id is not None and can_edit_song(s, lyric.song_id, user)


def can_view_lyric(s: "Session", lyric: Lyric, user: User) -> bool:
    if lyric.user_id == user.id:
        return True
    if lyric.song_id is None:
        return False
    song, _role = song_access(s, lyric.song_id, user)
    return song is not None


def create_lyric(s: "Session", user: User, payload: dict) -> Lyric:
    content = clean_str(payload.get("content"))
    if not content:
        raise LyricsError("Content is required")
    song_id = parse_int(payload.get("song_id"))
    if song_id and not can_edit_song(s, song_id, user):
        raise LyricsError("Not authorized to add lyrics to this song", 403)

    lyric = Lyric(
        user_id=user.id,
        song_id=song_id or None,
        title=clean_str(payload.get("title")),
        content=content,
        section_type=clean_str(payload.get("section_type")) or "idea",
        section_order=parse_int(payload.get("section_order")),
        mood=clean_str(payload.get("mood")),
        notes=clean_str(payload.get("notes")),
        status=clean_str(payload.get("status")) or "draft",
    )
    lyric.author = user
    s.add(lyric)
    s.flush()
    return lyric


def update_lyric(s: "Session", lyric: Lyric, user: User, payload: dict) -> Lyric:
    """
    Full update of the text fields. song_id and section_order keep their current
    values when absent from the payload; an explicit null song_id makes the
    lyric standalone.
    """
    if not can_edit_lyric(s, lyric, user):
        raise LyricsError("Not authorized to edit this lyric", 403)

    new_song_id = parse_int(payload.get("song_id")) if "song_id" in payload else lyric.song_id
    if new_song_id and new_song_id != lyric.song_id and not can_edit_song(s, new_song_id, user):
        raise LyricsError("Not authorized to add lyrics to that song", 403)

    content = clean_str(payload.get("content"))
    if not content:
        raise LyricsError("Content is required")

    lyric.song_id = new_song_id or None
    lyric.title = clean_str(payload.get("title"))
    lyric.content = content
    lyric.section_type = clean_str(payload.get("section_type")) or "idea"
    if "section_order" in payload:
        lyric.section_order = parse_int(payload.get("section_order"))
    lyric.mood = clean_str(payload.get("mood"))
    lyric.notes = clean_str(payload.get("notes"))
    lyric.status = clean_str(payload.get("status")) or "draft"
    return lyric


def reorder_lyrics(s: "Session", song_id: int, order: list) -> int:
    """Applies [{id, section_order}]; ids outside the song are ignored."""
    lyrics = {l.id: l for l in s.query(Lyric).filter(Lyric.song_id == song_id).all()}
    changed = 0
    for item in order:
        if not isinstance(item, dict):
            raise LyricsError("Each lyricOrder entry must be an object")
        lyric = lyrics.get(parse_int(item.get("id")))
        if lyric is None:
            continue
        lyric.section_order = parse_int(item.get("section_order"))
        changed += 1
    return changed
