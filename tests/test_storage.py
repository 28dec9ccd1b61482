from collections import defaultdict
from pathlib import Path

import pytest

from app.breakroom import auth as auth_module
from app.breakroom import create_app
from app.breakroom.storage import LocalStorage, S3Storage, StorageError, resolve_upload_key, storage_from_config


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setattr(auth_module, "_login_attempts", defaultdict(list))
    return create_app()


@pytest.fixture()
def client(app):
    return app.test_client()


def test_resolve_upload_key():
    assert resolve_upload_key("gallery/3/art_1.png") == "gallery/3/art_1.png"
    assert resolve_upload_key("/profiles/profile_9.jpg") == "profiles/profile_9.jpg"
    assert resolve_upload_key("profile_9.jpg") == "profiles/profile_9.jpg"
    assert resolve_upload_key("chat_12.png") == "chat/chat_12.png"
    assert resolve_upload_key("misc.txt") == "misc.txt"
    assert resolve_upload_key("") is None


def test_s3_public_url_variants():
    base = dict(endpoint="", region="us-west-2", bucket="b", access_key_id="k", secret_access_key="s")
    assert S3Storage(**base).public_url("a/b.png") == "https://b.s3.us-west-2.amazonaws.com/a/b.png"
    assert S3Storage(**{**base, "endpoint": "nyc3.digitaloceanspaces.com"}).public_url("k") == (
        "https://b.nyc3.digitaloceanspaces.com/k"
    )
    assert S3Storage(**{**base, "public_base_url": "https://cdn.test/"}).public_url("k") == "https://cdn.test/k"


def test_storage_from_config_picks_backend():
    assert isinstance(storage_from_config({"STORAGE_BACKEND": "S3", "S3_BUCKET": "b"}), S3Storage)
    assert isinstance(storage_from_config({}), LocalStorage)


def test_local_storage_rejects_escaping_keys(tmp_path):
    storage = LocalStorage(root=tmp_path / "storage")
    storage.put_bytes("a/b.txt", b"hi")
    assert storage.exists("a/b.txt")
    with pytest.raises(StorageError):
        storage.put_bytes("../outside.txt", b"x")
    storage.delete("a/b.txt")
    storage.delete("a/b.txt")
    assert not storage.exists("a/b.txt")


def test_upload_redirects(client):
    r = client.get("/uploads/gallery/1/art_5.png")
    assert r.status_code == 301
    assert r.headers["Location"].endswith("/storage/gallery/1/art_5.png")

    r = client.get("/api/uploads/profile_7.jpg")
    assert r.status_code == 301
    assert r.headers["Location"].endswith("/storage/profiles/profile_7.jpg")

    for path in ("/uploads/", "/uploads", "/api/uploads/", "/api/uploads"):
        r = client.get(path)
        assert r.status_code == 404, path
        assert r.json == {"message": "File not found"}


def test_local_files_are_served(client, tmp_path):
    target = Path(tmp_path) / "storage" / "gallery" / "1" / "art_5.png"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"png-bytes")

    r = client.get("/storage/gallery/1/art_5.png")
    assert r.status_code == 200
    assert r.data == b"png-bytes"
    assert r.mimetype == "image/png"
    r.close()

    assert client.get("/storage/gallery/1/missing.png").status_code == 404
