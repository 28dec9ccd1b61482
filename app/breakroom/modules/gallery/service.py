from __future__ import annotations

import logging
import os
import re
import time
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from app.breakroom.constants import ARTWORK_EXTENSIONS, ARTWORK_MAX_BYTES, ARTWORK_MIME_TYPES
from app.breakroom.models import User
from app.breakroom.modules.gallery.models import GalleryArtwork, UserGallery
from app.breakroom.storage import Storage, StorageError
from app.breakroom.utils import clean_str, isoformat, parse_bool

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_GALLERY_URL_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
URL_TAKEN = "This gallery URL is already taken"


class GalleryError(ValueError):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def default_gallery_name(user: User) -> str:
    return f"{user.handle}'s Gallery"


# ---------- Serialization ----------
def serialize_settings(gallery: UserGallery) -> dict:
    return {
        "id": gallery.id,
        "gallery_url": gallery.gallery_url,
        "gallery_name": gallery.gallery_name,
        "created_at": isoformat(gallery.created_at),
    }


def serialize_artwork(artwork: GalleryArtwork, *, include_published: bool = True) -> dict:
    out = {
        "id": artwork.id,
        "title": artwork.title,
        "description": artwork.description,
        "image_path": artwork.image_path,
        "created_at": isoformat(artwork.created_at),
        "updated_at": isoformat(artwork.updated_at),
    }
    if include_published:
        out["is_published"] = artwork.is_published
    return out


def serialize_public_gallery(gallery: UserGallery) -> dict:
    artist = gallery.user
    return {
        "id": gallery.id,
        "gallery_url": gallery.gallery_url,
        "gallery_name": gallery.gallery_name,
        "artist": {
            "handle": artist.handle,
            "first_name": artist.first_name,
            "last_name": artist.last_name,
            "photo_path": artist.photo_path,
            "bio": artist.bio,
        },
    }


# ---------- Settings ----------
def get_settings(s: "Session", user: User) -> UserGallery | None:
    return s.query(UserGallery).filter(UserGallery.user_id == user.id).one_or_none()


def find_by_url(s: "Session", gallery_url: str) -> UserGallery | None:
    return s.query(UserGallery).filter(UserGallery.gallery_url == gallery_url).one_or_none()


def _validate_url(gallery_url: str) -> None:
    if not _GALLERY_URL_RE.match(gallery_url):
        raise GalleryError("Gallery URL may only contain letters, numbers, hyphens and underscores")


def _flush_unique(s: "Session") -> None:
    # uniqueness was checked up front; a concurrent insert can still win the race
    try:
        s.flush()
    except IntegrityError as e:
        s.rollback()
        raise GalleryError(URL_TAKEN) from e


def create_settings(s: "Session", user: User, payload: dict) -> UserGallery:
    if get_settings(s, user):
        raise GalleryError("Gallery settings already exist. Use PUT to update.")
    gallery_url = clean_str(payload.get("gallery_url")) or user.handle
    if clean_str(payload.get("gallery_url")):
        _validate_url(gallery_url)
    if find_by_url(s, gallery_url):
        raise GalleryError(URL_TAKEN)
    gallery = UserGallery(
        user_id=user.id,
        gallery_url=gallery_url,
        gallery_name=clean_str(payload.get("gallery_name")) or default_gallery_name(user),
    )
    s.add(gallery)
    _flush_unique(s)
    return gallery


def update_settings(s: "Session", user: User, payload: dict) -> UserGallery:
    gallery_url = clean_str(payload.get("gallery_url"))
    if not gallery_url:
        raise GalleryError("Gallery URL is required")
    _validate_url(gallery_url)
    existing = find_by_url(s, gallery_url)
    if existing and existing.user_id != user.id:
        raise GalleryError(URL_TAKEN)
    gallery = get_settings(s, user)
    if gallery is None:
        raise GalleryError("Gallery settings not found", 404)
    gallery.gallery_url = gallery_url
    gallery.gallery_name = clean_str(payload.get("gallery_name")) or default_gallery_name(user)
    _flush_unique(s)
    return gallery


def check_url(s: "Session", user: User, gallery_url: str) -> dict:
    existing = find_by_url(s, gallery_url)
    if existing is None:
        return {"available": True}
    if existing.user_id == user.id:
        return {"available": True, "isOwn": True}
    return {"available": False}


def ensure_gallery(s: "Session", user: User) -> UserGallery:
    """Gallery settings for user, created on first use from the handle."""
    gallery = get_settings(s, user)
    if gallery:
        return gallery
    gallery_url = user.handle
    if find_by_url(s, gallery_url):
        gallery_url = f"{user.handle}-{user.id}"
    gallery = UserGallery(user_id=user.id, gallery_url=gallery_url, gallery_name=default_gallery_name(user))
    s.add(gallery)
    _flush_unique(s)
    return gallery


# ---------- Artworks ----------
def validate_image(filename: str | None, content_type: str | None, size: int) -> str:
    """Returns the normalized extension, or raises GalleryError."""
    # only the extension is kept; the stored key is generated
    ext = os.path.splitext(filename or "")[1].lower()
    mime = (content_type or "").split(";")[0].strip().lower()
    if ext not in ARTWORK_EXTENSIONS or mime not in ARTWORK_MIME_TYPES:
        raise GalleryError("Only image files are allowed")
    if size > ARTWORK_MAX_BYTES:
        raise GalleryError("Image must be 10MB or smaller")
    if size == 0:
        raise GalleryError("Image file is empty")
    return ext


def build_artwork_key(user_id: int, ext: str, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"gallery/{user_id}/art_{now_ms}{ext}"


def user_artwork(s: "Session", user: User, artwork_id: int) -> GalleryArtwork | None:
    return (
        s.query(GalleryArtwork)
        .filter(GalleryArtwork.id == artwork_id, GalleryArtwork.user_id == user.id)
        .one_or_none()
    )


def create_artwork(
    s: "Session",
    user: User,
    storage: Storage,
    *,
    file_bytes: bytes,
    filename: str | None,
    content_type: str | None,
    payload: dict,
) -> GalleryArtwork:
    title = clean_str(payload.get("title"))
    if not title:
        raise GalleryError("Title is required")
    ext = validate_image(filename, content_type, len(file_bytes))

    ensure_gallery(s, user)

    key = build_artwork_key(user.id, ext)
    try:
        storage.put_bytes(key, file_bytes, content_type=content_type)
    except StorageError as e:
        logger.error("Artwork upload failed (user=%s key=%s): %s", user.id, key, e)
        raise GalleryError(f"Failed to upload image: {e}", 500) from e

    artwork = GalleryArtwork(
        user_id=user.id,
        title=title,
        description=clean_str(payload.get("description")),
        image_path=key,
        is_published=parse_bool(payload.get("isPublished")),
    )
    s.add(artwork)
    s.flush()
    return artwork


def update_artwork(artwork: GalleryArtwork, payload: dict) -> GalleryArtwork:
    title = clean_str(payload.get("title"))
    if not title:
        raise GalleryError("Title is required")
    artwork.title = title
    artwork.description = clean_str(payload.get("description"))
    artwork.is_published = parse_bool(payload.get("isPublished"))
    return artwork


def delete_artwork_image(storage: Storage, key: str | None) -> bool:
    """Best effort: the row is already gone, a dangling object is only logged."""
    if not key:
        return True
    try:
        storage.delete(key)
        return True
    except StorageError as e:
        logger.warning("Failed to delete stored artwork %s: %s", key, e)
        return False


def published_artworks(s: "Session", user_id: int) -> list[GalleryArtwork]:
    return (
        s.query(GalleryArtwork)
        .filter(GalleryArtwork.user_id == user_id, GalleryArtwork.is_published.is_(True))
        .order_by(GalleryArtwork.created_at.desc(), GalleryArtwork.id.desc())
        .all()
    )
