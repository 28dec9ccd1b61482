from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.breakroom.db import db_session
from app.breakroom.models import User
from app.breakroom.modules.lyrics.models import Lyric, Song
from app.breakroom.modules.lyrics.service import (
    LyricsError,
    add_collaborator,
    can_edit_lyric,
    can_edit_song,
    can_view_lyric,
    create_lyric,
    create_song,
    delete_song,
    list_songs,
    remove_collaborator,
    reorder_lyrics,
    serialize_collaborator,
    serialize_lyric,
    serialize_song,
    song_access,
    song_lyrics,
    update_lyric,
    update_song,
)
from app.breakroom.rbac import require_auth, role_can_edit
from app.breakroom.utils import json_error, json_payload

bp = Blueprint("lyrics", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Songs ----------
@bp.get("/songs")
@require_auth
def songs_list():
    s = db_session()
    return jsonify({"songs": list_songs(s, _current_user())})


@bp.get("/songs/<int:song_id>")
@require_auth
def song_detail(song_id: int):
    s = db_session()
    song, role = song_access(s, song_id, _current_user())
    if not song:
        return json_error("Song not found", 404)
    return jsonify({
        "song": serialize_song(song, role),
        "lyrics": [serialize_lyric(l) for l in song_lyrics(s, song.id)],
        "collaborators": [serialize_collaborator(c) for c in song.collaborators],
    })


@bp.post("/songs")
@require_auth
def song_create():
    s = db_session()
    try:
        song = create_song(s, _current_user(), json_payload())
    except LyricsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"song": serialize_song(song)}), 201


@bp.put("/songs/<int:song_id>")
@require_auth
def song_update(song_id: int):
    s = db_session()
    song, role = song_access(s, song_id, _current_user())
    if not song or not role_can_edit(role):
        return json_error("Not authorized to edit this song", 403)
    try:
        update_song(song, json_payload())
    except LyricsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"song": serialize_song(song, role)})


@bp.delete("/songs/<int:song_id>")
@require_auth
def song_delete(song_id: int):
    s = db_session()
    u = _current_user()
    song = s.get(Song, song_id)
    if not song or song.user_id != u.id:
        return json_error("Song not found or not authorized", 404)
    delete_song(s, song, u)
    s.commit()
    return jsonify({"message": "Song deleted successfully"})


# ---------- Collaborators ----------
@bp.post("/songs/<int:song_id>/collaborators")
@require_auth
def collaborator_add(song_id: int):
    s = db_session()
    u = _current_user()
    song = s.get(Song, song_id)
    if not song or song.user_id != u.id:
        return json_error("Only the song owner can add collaborators", 403)
    payload = json_payload()
    try:
        collab = add_collaborator(s, song, u, payload.get("handle"), payload.get("role"))
    except LyricsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"collaborator": serialize_collaborator(collab)}), 201


@bp.delete("/songs/<int:song_id>/collaborators/<int:user_id>")
@require_auth
def collaborator_remove(song_id: int, user_id: int):
    s = db_session()
    u = _current_user()
    song = s.get(Song, song_id)
    if not song or song.user_id != u.id:
        return json_error("Only the song owner can remove collaborators", 403)
    remove_collaborator(s, song, u, user_id)
    s.commit()
    return jsonify({"message": "Collaborator removed"})


@bp.put("/songs/<int:song_id>/reorder")
@require_auth
def lyrics_reorder(song_id: int):
    s = db_session()
    if not can_edit_song(s, song_id, _current_user()):
        return json_error("Not authorized to edit this song", 403)
    order = json_payload().get("lyricOrder")
    if not isinstance(order, list):
        return json_error("lyricOrder array is required", 400)
    try:
        reorder_lyrics(s, song_id, order)
    except LyricsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"message": "Lyrics reordered successfully"})


# ---------- Lyrics ----------
@bp.get("/standalone")
@require_auth
def standalone_list():
    s = db_session()
    lyrics = (
        s.query(Lyric)
        .filter(Lyric.user_id == _current_user().id, Lyric.song_id.is_(None))
        .order_by(Lyric.updated_at.desc(), Lyric.id.desc())
        .all()
    )
    return jsonify({"lyrics": [serialize_lyric(l) for l in lyrics]})


@bp.get("/<int:lyric_id>")
@require_auth
def lyric_detail(lyric_id: int):
    s = db_session()
    lyric = s.get(Lyric, lyric_id)
    if not lyric:
        return json_error("Lyric not found", 404)
    if not can_view_lyric(s, lyric, _current_user()):
        return json_error("Not authorized to view this lyric", 403)
    return jsonify({"lyric": serialize_lyric(lyric)})


@bp.post("/", strict_slashes=False)
@require_auth
def lyric_create():
    s = db_session()
    try:
        lyric = create_lyric(s, _current_user(), json_payload())
    except LyricsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"lyric": serialize_lyric(lyric)}), 201


@bp.put("/<int:lyric_id>")
@require_auth
def lyric_update(lyric_id: int):
    s = db_session()
    lyric = s.get(Lyric, lyric_id)
    if not lyric:
        return json_error("Lyric not found", 404)
    try:
        update_lyric(s, lyric, _current_user(), json_payload())
    except LyricsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"lyric": serialize_lyric(lyric)})


@bp.delete("/<int:lyric_id>")
@require_auth
def lyric_delete(lyric_id: int):
    s = db_session()
    lyric = s.get(Lyric, lyric_id)
    if not lyric:
        return json_error("Lyric not found", 404)
    if not can_edit_lyric(s, lyric, _current_user()):
        return json_error("Not authorized to delete this lyric", 403)
    s.delete(lyric)
    s.commit()
    return jsonify({"message": "Lyric deleted successfully"})
