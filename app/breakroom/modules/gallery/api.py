from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.breakroom.db import db_session
from app.breakroom.models import User
from app.breakroom.modules.gallery.models import GalleryArtwork
from app.breakroom.modules.gallery.service import (
    GalleryError,
    check_url,
    create_artwork,
    create_settings,
    delete_artwork_image,
    find_by_url,
    get_settings,
    published_artworks,
    serialize_artwork,
    serialize_public_gallery,
    serialize_settings,
    update_artwork,
    update_settings,
    user_artwork,
)
from app.breakroom.rbac import require_auth
from app.breakroom.storage import storage_from_config
from app.breakroom.utils import json_error, json_payload

bp = Blueprint("gallery", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Public ----------
@bp.get("/public/<gallery_url>")
def public_gallery(gallery_url: str):
    s = db_session()
    gallery = find_by_url(s, gallery_url)
    if not gallery:
        return json_error("Gallery not found", 404)
    return jsonify({
        "gallery": serialize_public_gallery(gallery),
        "artworks": [serialize_artwork(a, include_published=False) for a in published_artworks(s, gallery.user_id)],
    })


@bp.get("/public/<gallery_url>/<int:artwork_id>")
def public_artwork(gallery_url: str, artwork_id: int):
    s = db_session()
    gallery = find_by_url(s, gallery_url)
    artwork = s.get(GalleryArtwork, artwork_id) if gallery else None
    if not gallery or not artwork or artwork.user_id != gallery.user_id or not artwork.is_published:
        return json_error("Artwork not found", 404)
    public = serialize_public_gallery(gallery)
    public.pop("id", None)
    return jsonify({
        "artwork": serialize_artwork(artwork, include_published=False),
        "gallery": public,
    })


# ---------- Settings ----------
@bp.get("/settings")
@require_auth
def settings_get():
    s = db_session()
    gallery = get_settings(s, _current_user())
    return jsonify({"settings": serialize_settings(gallery) if gallery else None})


@bp.post("/settings")
@require_auth
def settings_create():
    s = db_session()
    try:
        gallery = create_settings(s, _current_user(), json_payload())
    except GalleryError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"settings": serialize_settings(gallery)}), 201


@bp.put("/settings")
@require_auth
def settings_update():
    s = db_session()
    try:
        gallery = update_settings(s, _current_user(), json_payload())
    except GalleryError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"settings": serialize_settings(gallery)})


@bp.get("/check-url/<gallery_url>")
@require_auth
def settings_check_url(gallery_url: str):
    s = db_session()
    return jsonify(check_url(s, _current_user(), gallery_url))


# ---------- Artworks ----------
@bp.get("/artworks")
@require_auth
def artworks_list():
    s = db_session()
    artworks = (
        s.query(GalleryArtwork)
        .filter(GalleryArtwork.user_id == _current_user().id)
        .order_by(GalleryArtwork.created_at.desc(), GalleryArtwork.id.desc())
        .all()
    )
    return jsonify({"artworks": [serialize_artwork(a) for a in artworks]})


@bp.get("/artworks/<int:artwork_id>")
@require_auth
def artwork_detail(artwork_id: int):
    s = db_session()
    artwork = user_artwork(s, _current_user(), artwork_id)
    if not artwork:
        return json_error("Artwork not found", 404)
    return jsonify({"artwork": serialize_artwork(artwork)})


@bp.post("/artworks")
@require_auth
def artwork_create():
    f = request.files.get("image")
    if not f or not f.filename:
        return json_error("Image file is required", 400)

    s = db_session()
    u = _current_user()
    try:
        artwork = create_artwork(
            s,
            u,
            storage_from_config(current_app.config),
            file_bytes=f.read(),
            filename=f.filename,
            content_type=f.mimetype,
            payload=request.form.to_dict(),
        )
    except GalleryError as e:
        return json_error(str(e), e.status)
    s.commit()
    current_app.logger.info("Artwork created (user=%s artwork=%s key=%s)", u.id, artwork.id, artwork.image_path)
    return jsonify({"artwork": serialize_artwork(artwork)}), 201


@bp.put("/artworks/<int:artwork_id>")
@require_auth
def artwork_update(artwork_id: int):
    s = db_session()
    artwork = user_artwork(s, _current_user(), artwork_id)
    if not artwork:
        return json_error("Artwork not found", 404)
    try:
        update_artwork(artwork, json_payload())
    except GalleryError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"artwork": serialize_artwork(artwork)})


@bp.delete("/artworks/<int:artwork_id>")
@require_auth
def artwork_delete(artwork_id: int):
    s = db_session()
    artwork = user_artwork(s, _current_user(), artwork_id)
    if not artwork:
        return json_error("Artwork not found", 404)
    key = artwork.image_path
    s.delete(artwork)
    s.commit()
    delete_artwork_image(storage_from_config(current_app.config), key)
    return jsonify({"message": "Artwork deleted successfully"})
