"""Tests for gallery settings, artwork uploads and the public gallery."""
import io
from collections import defaultdict

import pytest
from werkzeug.security import generate_password_hash

from app.breakroom import auth as auth_module
from app.breakroom import create_app
from app.breakroom.db import session_scope
from app.breakroom.models import Base, User
from app.breakroom.modules.gallery.models import UserGallery
from app.breakroom.modules.gallery.service import GalleryError, build_artwork_key, validate_image

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "CORS_ORIGIN", "COOKIE_DOMAIN"):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.setattr(auth_module, "_login_attempts", defaultdict(list))

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        for handle in ("alice", "bob"):
            s.add(User(handle=handle, email=f"{handle}@example.com", password_hash=generate_password_hash("pw"), bio=f"{handle} paints"))

    return app


def _client_for(app, handle):
    c = app.test_client()
    assert c.post("/api/auth/login", json={"handle": handle, "password": "pw"}).status_code == 200
    return c


@pytest.fixture()
def alice(app):
    return _client_for(app, "alice")


@pytest.fixture()
def bob(app):
    return _client_for(app, "bob")


def _upload(client, *, title="Sunset", filename="sunset.png", mimetype="image/png", data=PNG, published=None):
    form = {"image": (io.BytesIO(data), filename, mimetype)}
    if title is not None:
        form["title"] = title
    if published is not None:
        form["isPublished"] = "true" if published else "false"
    return client.post("/api/gallery/artworks", data=form, content_type="multipart/form-data")


def test_validate_image_rules():
    assert validate_image("a.JPG", "image/jpeg", 10) == ".jpg"
    with pytest.raises(GalleryError):
        validate_image("a.txt", "text/plain", 10)
    with pytest.raises(GalleryError):
        validate_image("a.png", "application/octet-stream", 10)
    with pytest.raises(GalleryError):
        validate_image("a.png", "image/png", 10 * 1024 * 1024 + 1)
    assert validate_image("夕焼け.png", "image/png", 10) == ".png"
    assert build_artwork_key(7, ".png", now_ms=1700000000000) == "gallery/7/art_1700000000000.png"


def test_settings_lifecycle(alice, bob):
    r = alice.get("/api/gallery/settings")
    assert r.status_code == 200
    assert r.json["settings"] is None

    r = alice.post("/api/gallery/settings", json={})
    assert r.status_code == 201
    assert r.json["settings"]["gallery_url"] == "alice"
    assert r.json["settings"]["gallery_name"] == "alice's Gallery"
    assert alice.post("/api/gallery/settings", json={}).status_code == 400

    assert bob.post("/api/gallery/settings", json={"gallery_url": "alice"}).status_code == 400
    assert bob.put("/api/gallery/settings", json={"gallery_url": "bobs-art"}).status_code == 404
    assert bob.post("/api/gallery/settings", json={"gallery_url": "bobs-art", "gallery_name": "Bob Art"}).status_code == 201

    assert alice.put("/api/gallery/settings", json={"gallery_url": "bobs-art"}).status_code == 400
    assert alice.put("/api/gallery/settings", json={}).status_code == 400
    assert alice.put("/api/gallery/settings", json={"gallery_url": "bad url!"}).status_code == 400
    r = alice.put("/api/gallery/settings", json={"gallery_url": "alice-art", "gallery_name": "Alice Art"})
    assert r.status_code == 200
    assert r.json["settings"]["gallery_name"] == "Alice Art"

    assert alice.get("/api/gallery/check-url/alice-art").json == {"available": True, "isOwn": True}
    assert alice.get("/api/gallery/check-url/bobs-art").json == {"available": False}
    assert alice.get("/api/gallery/check-url/free-url").json == {"available": True}


def test_first_upload_creates_gallery_and_stores_file(app, alice, tmp_path):
    r = _upload(alice)
    assert r.status_code == 201
    artwork = r.json["artwork"]
    assert artwork["is_published"] is False
    assert artwork["image_path"].startswith("gallery/")
    assert artwork["image_path"].endswith(".png")
    assert (tmp_path / "storage" / artwork["image_path"]).read_bytes() == PNG

    assert alice.get("/api/gallery/settings").json["settings"]["gallery_url"] == "alice"


def test_upload_with_non_ascii_filename(alice, tmp_path):
    r = _upload(alice, filename="夕焼け.png")
    assert r.status_code == 201
    key = r.json["artwork"]["image_path"]
    assert key.endswith(".png")
    assert (tmp_path / "storage" / key).read_bytes() == PNG


def test_auto_created_gallery_avoids_taken_handle(app, alice):
    with session_scope(app) as s:
        bob = s.query(User).filter(User.handle == "bob").one()
        s.add(UserGallery(user_id=bob.id, gallery_url="alice", gallery_name="Squatter"))
        alice_id = s.query(User).filter(User.handle == "alice").one().id

    assert _upload(alice).status_code == 201
    assert alice.get("/api/gallery/settings").json["settings"]["gallery_url"] == f"alice-{alice_id}"


def test_upload_rejections(alice):
    assert _upload(alice, filename="notes.txt", mimetype="text/plain").status_code == 400
    assert _upload(alice, filename="fake.png", mimetype="text/plain").status_code == 400
    assert _upload(alice, data=b"\x00" * (10 * 1024 * 1024 + 1)).status_code == 400
    assert _upload(alice, title=None).status_code == 400

    r = alice.post("/api/gallery/artworks", data={"title": "no file"}, content_type="multipart/form-data")
    assert r.status_code == 400
    assert alice.get("/api/gallery/artworks").json["artworks"] == []


def test_artwork_owner_only(alice, bob):
    art_id = _upload(alice).json["artwork"]["id"]
    assert bob.get(f"/api/gallery/artworks/{art_id}").status_code == 404
    assert bob.put(f"/api/gallery/artworks/{art_id}", json={"title": "mine"}).status_code == 404
    assert bob.delete(f"/api/gallery/artworks/{art_id}").status_code == 404
    assert alice.get(f"/api/gallery/artworks/{art_id}").status_code == 200


def test_public_gallery_shows_published_only(app, alice, bob):
    hidden = _upload(alice, title="Sketch").json["artwork"]
    shown = _upload(alice, title="Final", published=True).json["artwork"]

    anon = app.test_client()
    r = anon.get("/api/gallery/public/alice")
    assert r.status_code == 200
    assert r.json["gallery"]["artist"]["handle"] == "alice"
    assert r.json["gallery"]["artist"]["bio"] == "alice paints"
    assert [a["id"] for a in r.json["artworks"]] == [shown["id"]]
    assert "is_published" not in r.json["artworks"][0]

    assert anon.get(f"/api/gallery/public/alice/{shown['id']}").status_code == 200
    assert anon.get(f"/api/gallery/public/alice/{hidden['id']}").status_code == 404
    assert anon.get("/api/gallery/public/nobody").status_code == 404

    r = alice.put(f"/api/gallery/artworks/{hidden['id']}", json={"title": "Sketch v2", "isPublished": True})
    assert r.status_code == 200
    assert r.json["artwork"]["is_published"] is True
    assert len(anon.get("/api/gallery/public/alice").json["artworks"]) == 2

    # another user's artwork id under alice's url
    _upload(bob, published=True)
    bob_art = bob.get("/api/gallery/artworks").json["artworks"][0]
    assert anon.get(f"/api/gallery/public/alice/{bob_art['id']}").status_code == 404


def test_update_requires_title(alice):
    art_id = _upload(alice).json["artwork"]["id"]
    assert alice.put(f"/api/gallery/artworks/{art_id}", json={"title": ""}).status_code == 400


def test_delete_removes_row_and_file(alice, tmp_path):
    artwork = _upload(alice).json["artwork"]
    stored = tmp_path / "storage" / artwork["image_path"]
    assert stored.exists()

    r = alice.delete(f"/api/gallery/artworks/{artwork['id']}")
    assert r.status_code == 200
    assert not stored.exists()
    assert alice.get(f"/api/gallery/artworks/{artwork['id']}").status_code == 404
