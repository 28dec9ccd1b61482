from collections import defaultdict
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from werkzeug.security import generate_password_hash

from app.breakroom import auth as auth_module
from app.breakroom import create_app
from app.breakroom.db import engine_options, session_scope
from app.breakroom.models import AuditEvent, Base, User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("SPA_DIST_DIR", str(tmp_path / "dist"))
    for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "CORS_ORIGIN", "COOKIE_DOMAIN", "TEST_API_KEY"):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.setattr(auth_module, "_login_attempts", defaultdict(list))

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(handle="alice", email="alice@example.com", password_hash=generate_password_hash("pw"), first_name="Alice"))

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, handle="alice", password="pw"):
    return client.post("/api/auth/login", json={"handle": handle, "password": password})


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_protected_endpoint_requires_token(client):
    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json["message"] == "Not authenticated"


def test_login_sets_cookie_and_me_works(client):
    r = _login(client)
    assert r.status_code == 200
    assert r.json["user"]["handle"] == "alice"
    assert r.json["token"]
    assert "X-New-Token" not in r.headers
    assert any(h.startswith("jwtToken=") for h in r.headers.getlist("Set-Cookie"))

    r = client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json["user"]["email"] == "alice@example.com"


def test_login_by_email_and_bad_password(client):
    assert _login(client, handle="ALICE@example.com").status_code == 200

    r = _login(client, password="nope")
    assert r.status_code == 401
    assert r.json["message"] == "Invalid credentials"


def test_bearer_header_and_sliding_refresh(app):
    token = _login(app.test_client()).json["token"]

    bare = app.test_client()
    r = bare.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    new_token = r.headers.get("X-New-Token")
    assert new_token
    with app.app_context():
        assert auth_module.decode_token(new_token)["username"] == "alice"


def test_invalid_and_expired_tokens_rejected(client):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid token"

    expired = jwt.encode(
        {"username": "alice", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        "test-secret",
        algorithm="HS256",
    )
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 401
    assert "X-New-Token" not in r.headers


def test_token_for_unknown_user(client):
    token = jwt.encode(
        {"username": "ghost", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "test-secret",
        algorithm="HS256",
    )
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json["message"] == "User not found"


def test_signup_and_duplicates(client, app):
    r = client.post("/api/auth/signup", json={"handle": "bob", "email": "Bob@Example.com", "password": "pw2"})
    assert r.status_code == 201
    assert r.json["user"]["email"] == "bob@example.com"

    r = client.get("/api/auth/me")
    assert r.json["user"]["handle"] == "bob"

    r = client.post("/api/auth/signup", json={"handle": "bob", "email": "other@example.com", "password": "x"})
    assert r.status_code == 400
    r = client.post("/api/auth/signup", json={"handle": "bobby", "email": "bob@example.com", "password": "x"})
    assert r.status_code == 400
    r = client.post("/api/auth/signup", json={"handle": "carol"})
    assert r.status_code == 400

    with session_scope(app) as s:
        actions = [e.action for e in s.query(AuditEvent).all()]
    assert "auth.signup" in actions


def test_logout_clears_cookie(client):
    _login(client)
    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert "X-New-Token" not in r.headers

    r = client.get("/api/auth/me")
    assert r.status_code == 401


def test_login_rate_limited(client):
    for _ in range(5):
        assert _login(client, password="wrong").status_code == 401
    r = _login(client)
    assert r.status_code == 429


def test_unknown_api_path_is_json_404(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json["message"]


def test_unknown_api_path_is_json_404_for_every_method(client):
    for method in ("post", "put", "patch", "delete"):
        r = getattr(client, method)("/api/does-not-exist", json={})
        assert r.status_code == 404, method
        assert r.json == {"message": "Not found"}

    # known route, malformed id
    r = client.put("/api/breakroom/layout/abc", json={"items": []})
    assert r.status_code == 404
    assert r.json == {"message": "Not found"}


def test_spa_fallback_serves_shell(client):
    r = client.get("/some/client/route")
    assert r.status_code == 200
    assert b'<div id="app">' in r.data


def test_engine_options_size_pool_for_postgres_only():
    pg = engine_options("postgresql+psycopg2://u:p@db/breakroom")
    assert pg["pool_size"] == 5
    assert pg["pool_pre_ping"] is True
    lite = engine_options("sqlite:///breakroom.db")
    assert "pool_size" not in lite
    assert lite["pool_pre_ping"] is True
