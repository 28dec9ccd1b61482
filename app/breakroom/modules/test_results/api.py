from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from app.breakroom.db import db_session
from app.breakroom.modules.test_results.models import TestRun, TestSuite
from app.breakroom.modules.test_results.service import (
    TestResultsError,
    bulk_create,
    complete_run,
    complete_suite,
    create_case,
    create_run,
    create_suite,
    list_runs,
    serialize_case,
    serialize_run,
    serialize_suite,
)
from app.breakroom.rbac import require_api_key, require_auth
from app.breakroom.utils import json_error, json_payload

bp = Blueprint("test_results", __name__)


# ---------- Reporter (API key) ----------
@bp.post("/runs")
@require_api_key
def run_create():
    s = db_session()
    try:
        run = create_run(s, json_payload())
    except TestResultsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"run": serialize_run(run)}), 201


@bp.post("/runs/<int:run_id>/suites")
@require_api_key
def suite_create(run_id: int):
    s = db_session()
    run = s.get(TestRun, run_id)
    if not run:
        return json_error("Test run not found", 404)
    try:
        suite = create_suite(s, run, json_payload())
    except TestResultsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"suite": serialize_suite(suite)}), 201


@bp.post("/suites/<int:suite_id>/cases")
@require_api_key
def case_create(suite_id: int):
    s = db_session()
    suite = s.get(TestSuite, suite_id)
    if not suite:
        return json_error("Test suite not found", 404)
    try:
        case = create_case(s, suite, json_payload())
    except TestResultsError as e:
        return json_error(str(e), e.status)
    s.commit()
    return jsonify({"testCase": serialize_case(case)}), 201


@bp.put("/suites/<int:suite_id>/complete")
@require_api_key
def suite_complete(suite_id: int):
    s = db_session()
    suite = s.get(TestSuite, suite_id)
    if not suite:
        return json_error("Test suite not found", 404)
    complete_suite(s, suite, json_payload())
    s.commit()
    return jsonify({"suite": serialize_suite(suite)})


@bp.put("/runs/<int:run_id>/complete")
@require_api_key
def run_complete(run_id: int):
    s = db_session()
    run = s.get(TestRun, run_id)
    if not run:
        return json_error("Test run not found", 404)
    complete_run(s, run)
    s.commit()
    return jsonify({"run": serialize_run(run)})


@bp.post("/runs/bulk")
@require_api_key
def run_bulk():
    s = db_session()
    try:
        run = bulk_create(s, json_payload())
        s.commit()
    except TestResultsError as e:
        s.rollback()
        return json_error(str(e), e.status)
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Bulk test run insert failed")
        return json_error("Failed to create test run", 500)
    current_app.logger.info(
        "Bulk test run stored (run=%s platform=%s total=%s failed=%s)",
        run.id,
        run.platform,
        run.total_tests,
        run.failed_tests,
    )
    return jsonify({"run": serialize_run(run)}), 201


# ---------- Viewer (user auth) ----------
@bp.get("/runs")
@require_auth
def runs_list():
    s = db_session()
    return jsonify(list_runs(s, request.args.to_dict()))


@bp.get("/runs/<int:run_id>")
@require_auth
def run_detail(run_id: int):
    s = db_session()
    run = s.get(TestRun, run_id)
    if not run:
        return json_error("Test run not found", 404)
    return jsonify({
        "run": serialize_run(run),
        "suites": [serialize_suite(suite, with_cases=True) for suite in run.suites],
    })


@bp.delete("/runs/<int:run_id>")
@require_auth
def run_delete(run_id: int):
    s = db_session()
    run = s.get(TestRun, run_id)
    if not run:
        return json_error("Test run not found", 404)
    s.delete(run)
    s.commit()
    return jsonify({"message": "Test run deleted successfully"})
