"""Tests for the test-run reporting and viewing API."""
from collections import defaultdict

import pytest
from werkzeug.security import generate_password_hash

from app.breakroom import auth as auth_module
from app.breakroom import create_app
from app.breakroom.db import session_scope
from app.breakroom.models import Base, User
from app.breakroom.modules.test_results.models import TestCase, TestRun, TestSuite
from app.breakroom.modules.test_results.service import tally

API_KEY = "reporter-key"
KEY = {"X-API-Key": API_KEY}


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("TEST_API_KEY", API_KEY)
    monkeypatch.setattr(auth_module, "_login_attempts", defaultdict(list))

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        s.add(User(handle="alice", email="alice@example.com", password_hash=generate_password_hash("pw")))

    return app


@pytest.fixture()
def reporter(app):
    return app.test_client()


@pytest.fixture()
def viewer(app):
    c = app.test_client()
    assert c.post("/api/auth/login", json={"handle": "alice", "password": "pw"}).status_code == 200
    return c


def _bulk_payload(platform="web", statuses=("passed", "failed", "skipped")):
    return {
        "platform": platform,
        "branch": "main",
        "commit_hash": "abc123",
        "suites": [
            {
                "name": "auth",
                "file_path": "tests/auth.spec.ts",
                "category": "e2e",
                "duration_ms": 1200,
                "tests": [{"name": f"t{i}", "status": st, "duration_ms": 10} for i, st in enumerate(statuses)],
            },
            {"name": "layout", "tests": [{"name": "packs", "status": "passed"}]},
        ],
    }


def test_tally():
    assert tally(["passed", "failed", "skipped", "pending"]) == {"total": 4, "passed": 1, "failed": 1, "skipped": 1}
    assert tally([]) == {"total": 0, "passed": 0, "failed": 0, "skipped": 0}


def test_api_key_required_when_configured(reporter):
    assert reporter.post("/api/test-results/runs", json={"platform": "web"}).status_code == 401
    r = reporter.post("/api/test-results/runs", json={"platform": "web"}, headers={"X-API-Key": "wrong"})
    assert r.status_code == 401
    assert reporter.post("/api/test-results/runs/bulk", json=_bulk_payload()).status_code == 401


def test_api_key_optional_when_unset(app, reporter):
    app.config["TEST_API_KEY"] = ""
    r = reporter.post("/api/test-results/runs", json={"platform": "android"})
    assert r.status_code == 201


def test_incremental_flow(reporter):
    r = reporter.post("/api/test-results/runs", json={"platform": "web", "branch": "main"}, headers=KEY)
    assert r.status_code == 201
    run = r.json["run"]
    assert run["status"] == "running"
    assert run["environment"] == "local"

    r = reporter.post(f"/api/test-results/runs/{run['id']}/suites", json={"name": "auth"}, headers=KEY)
    assert r.status_code == 201
    suite = r.json["suite"]

    for name, status in (("a", "passed"), ("b", "failed"), ("c", "skipped")):
        r = reporter.post(
            f"/api/test-results/suites/{suite['id']}/cases",
            json={"name": name, "status": status, "error_message": "boom" if status == "failed" else None},
            headers=KEY,
        )
        assert r.status_code == 201
    assert r.json["testCase"]["status"] == "skipped"

    r = reporter.put(f"/api/test-results/suites/{suite['id']}/complete", json={"duration_ms": 900}, headers=KEY)
    assert r.status_code == 200
    done = r.json["suite"]
    assert done["status"] == "failed"
    assert (done["total_tests"], done["passed_tests"], done["failed_tests"], done["skipped_tests"]) == (3, 1, 1, 1)
    assert done["duration_ms"] == 900
    assert done["ended_at"] is not None

    r = reporter.put(f"/api/test-results/runs/{run['id']}/complete", headers=KEY)
    finished = r.json["run"]
    assert finished["status"] == "failed"
    assert finished["total_tests"] == 3
    assert finished["ended_at"] is not None


def test_all_passing_run_completes(reporter):
    run = reporter.post("/api/test-results/runs", json={"platform": "android"}, headers=KEY).json["run"]
    suite = reporter.post(f"/api/test-results/runs/{run['id']}/suites", json={"name": "s"}, headers=KEY).json["suite"]
    reporter.post(f"/api/test-results/suites/{suite['id']}/cases", json={"name": "ok", "status": "passed"}, headers=KEY)

    assert reporter.put(f"/api/test-results/suites/{suite['id']}/complete", json={}, headers=KEY).json["suite"]["status"] == "passed"
    assert reporter.put(f"/api/test-results/runs/{run['id']}/complete", headers=KEY).json["run"]["status"] == "completed"


def test_reporting_validation(reporter):
    r = reporter.post("/api/test-results/runs", json={"platform": "ios"}, headers=KEY)
    assert r.status_code == 400
    assert r.json["message"] == 'Platform must be "web" or "android"'

    assert reporter.post("/api/test-results/runs/999/suites", json={"name": "s"}, headers=KEY).status_code == 404
    assert reporter.post("/api/test-results/suites/999/cases", json={"name": "c"}, headers=KEY).status_code == 404
    assert reporter.put("/api/test-results/runs/999/complete", headers=KEY).status_code == 404

    run = reporter.post("/api/test-results/runs", json={"platform": "web"}, headers=KEY).json["run"]
    assert reporter.post(f"/api/test-results/runs/{run['id']}/suites", json={}, headers=KEY).status_code == 400
    suite = reporter.post(f"/api/test-results/runs/{run['id']}/suites", json={"name": "s"}, headers=KEY).json["suite"]
    r = reporter.post(f"/api/test-results/suites/{suite['id']}/cases", json={"status": "passed"}, headers=KEY)
    assert r.status_code == 400


def test_bulk_create_counts(app, reporter):
    r = reporter.post("/api/test-results/runs/bulk", json=_bulk_payload(), headers=KEY)
    assert r.status_code == 201
    run = r.json["run"]
    assert run["status"] == "failed"
    assert (run["total_tests"], run["passed_tests"], run["failed_tests"], run["skipped_tests"]) == (4, 2, 1, 1)

    with session_scope(app) as s:
        suites = s.query(TestSuite).filter(TestSuite.test_run_id == run["id"]).order_by(TestSuite.id).all()
        assert [(x.name, x.status, x.total_tests) for x in suites] == [("auth", "failed", 3), ("layout", "passed", 1)]
        assert suites[0].duration_ms == 1200
        assert s.query(TestCase).count() == 4


def test_bulk_all_passed_is_completed(reporter):
    r = reporter.post("/api/test-results/runs/bulk", json=_bulk_payload(statuses=("passed",)), headers=KEY)
    assert r.json["run"]["status"] == "completed"


def test_bulk_is_all_or_nothing(app, reporter):
    payload = _bulk_payload()
    payload["suites"][1]["tests"].append({"status": "passed"})
    r = reporter.post("/api/test-results/runs/bulk", json=payload, headers=KEY)
    assert r.status_code == 400
    assert r.json["message"] == "Test case name is required"

    assert reporter.post("/api/test-results/runs/bulk", json={"platform": "web"}, headers=KEY).json["message"] == (
        "Suites array is required"
    )

    with session_scope(app) as s:
        assert s.query(TestRun).count() == 0
        assert s.query(TestCase).count() == 0


def test_viewer_requires_login(reporter):
    assert reporter.get("/api/test-results/runs").status_code == 401
    assert reporter.get("/api/test-results/runs", headers=KEY).status_code == 401


def test_list_filters_and_pagination(reporter, viewer):
    for platform in ("web", "web", "android"):
        reporter.post("/api/test-results/runs/bulk", json=_bulk_payload(platform=platform), headers=KEY)
    reporter.post("/api/test-results/runs", json={"platform": "web"}, headers=KEY)

    r = viewer.get("/api/test-results/runs")
    assert r.status_code == 200
    assert r.json["pagination"] == {"page": 1, "limit": 20, "total": 4, "pages": 1}
    ids = [run["id"] for run in r.json["runs"]]
    assert ids == sorted(ids, reverse=True)

    r = viewer.get("/api/test-results/runs?platform=web&status=failed")
    assert r.json["pagination"]["total"] == 2

    r = viewer.get("/api/test-results/runs?limit=3&page=2")
    assert len(r.json["runs"]) == 1
    assert r.json["pagination"] == {"page": 2, "limit": 3, "total": 4, "pages": 2}

    assert viewer.get("/api/test-results/runs?limit=1000").json["pagination"]["limit"] == 100
    assert viewer.get("/api/test-results/runs?page=0").json["pagination"]["page"] == 1


def test_detail_and_delete(app, reporter, viewer):
    run = reporter.post("/api/test-results/runs/bulk", json=_bulk_payload(), headers=KEY).json["run"]

    r = viewer.get(f"/api/test-results/runs/{run['id']}")
    assert r.status_code == 200
    assert r.json["run"]["id"] == run["id"]
    assert [suite["name"] for suite in r.json["suites"]] == ["auth", "layout"]
    assert [c["status"] for c in r.json["suites"][0]["cases"]] == ["passed", "failed", "skipped"]

    assert viewer.delete(f"/api/test-results/runs/{run['id']}").json["message"] == "Test run deleted successfully"
    assert viewer.get(f"/api/test-results/runs/{run['id']}").status_code == 404
    assert viewer.delete(f"/api/test-results/runs/{run['id']}").status_code == 404

    with session_scope(app) as s:
        assert s.query(TestSuite).count() == 0
        assert s.query(TestCase).count() == 0
