from __future__ import annotations

import mimetypes
from pathlib import Path

from flask import Blueprint, current_app, redirect, send_file, send_from_directory
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import safe_join

from app.breakroom.constants import DEFAULT_BASE_URL
from app.breakroom.db import db_session
from app.breakroom.modules.blog.service import blog_og, post_view_og, privacy_og
from app.breakroom.og import build_og_tags, inject_og, load_index_html
from app.breakroom.storage import LocalStorage, StorageError, resolve_upload_key, storage_from_config
from app.breakroom.utils import json_error

bp = Blueprint("routes", __name__)


def _base_url() -> str:
    return (current_app.config.get("CORS_ORIGIN") or DEFAULT_BASE_URL).rstrip("/")


def _index_html() -> str:
    return load_index_html(current_app.config.get("SPA_DIST_DIR") or "dist")


def _og_page(found) -> str:
    html = _index_html()
    if not found:
        return html
    info, title = found
    return inject_og(html, build_og_tags(info), title)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """Fast liveness probe. No DB access."""
    return "ok", 200


# ---------- Uploads ----------
@bp.get("/uploads")
@bp.get("/uploads/")
@bp.get("/api/uploads")
@bp.get("/api/uploads/")
def upload_missing_key():
    return json_error("File not found", 404)


@bp.get("/uploads/<path:key>")
@bp.get("/api/uploads/<path:key>")
def upload_redirect(key: str):
    """Uploaded files live in object storage; old links are redirected there."""
    resolved = resolve_upload_key(key)
    if not resolved:
        return json_error("File not found", 404)
    storage = storage_from_config(current_app.config)
    return redirect(storage.public_url(resolved), code=301)


@bp.get("/storage/<path:key>")
def local_storage_file(key: str):
    """Serves objects of the local backend (development); S3 objects are served by the bucket."""
    storage = storage_from_config(current_app.config)
    if not isinstance(storage, LocalStorage):
        return json_error("File not found", 404)
    try:
        if not storage.exists(key):
            return json_error("File not found", 404)
        fh = storage.open(key)
    except StorageError:
        return json_error("File not found", 404)
    mimetype = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return send_file(fh, mimetype=mimetype, max_age=3600)


# ---------- Open Graph pages ----------
@bp.get("/b/<blog_url>")
@bp.get("/b/<blog_url>/<int:post_id>")
def blog_page(blog_url: str, post_id: int | None = None):
    try:
        found = blog_og(db_session(), blog_url, _base_url(), post_id)
    except SQLAlchemyError:
        current_app.logger.exception("OG lookup failed for blog %s (post=%s)", blog_url, post_id)
        found = None
    return _og_page(found)


@bp.get("/blog/view/<int:post_id>")
def blog_view_page(post_id: int):
    try:
        found = post_view_og(db_session(), post_id, _base_url())
    except SQLAlchemyError:
        current_app.logger.exception("OG lookup failed for blog post %s", post_id)
        found = None
    return _og_page(found)


@bp.get("/privacy")
def privacy_page():
    return _og_page(privacy_og(_base_url()))


# ---------- API catch-all ----------
@bp.route("/api/<path:path>", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def api_not_found(path: str):
    return json_error("Not found", 404)


# ---------- SPA shell ----------
@bp.get("/", defaults={"path": ""})
@bp.get("/<path:path>")
def spa_fallback(path: str):
    if path == "api" or path.startswith("api/"):
        return json_error("Not found", 404)
    dist_dir = current_app.config.get("SPA_DIST_DIR") or "dist"
    if path:
        candidate = safe_join(dist_dir, path)
        if candidate and Path(candidate).is_file():
            return send_from_directory(Path(dist_dir).resolve(), path)
    return _index_html()
