from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.breakroom.constants import TEST_PLATFORMS
from app.breakroom.modules.test_results.models import TestCase, TestRun, TestSuite
from app.breakroom.utils import clean_str, isoformat, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class TestResultsError(ValueError):
    __test__ = False

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def tally(statuses: Iterable[str | None]) -> dict[str, int]:
    counts = {"total": 0, "passed": 0, "failed": 0, "skipped": 0}
    for status in statuses:
        counts["total"] += 1
        if status in ("passed", "failed", "skipped"):
            counts[status] += 1
    return counts


def _apply_counts(target: TestRun | TestSuite, counts: dict[str, int]) -> None:
    target.total_tests = counts["total"]
    target.passed_tests = counts["passed"]
    target.failed_tests = counts["failed"]
    target.skipped_tests = counts["skipped"]


def _platform(payload: dict) -> str:
    platform = payload.get("platform")
    if platform not in TEST_PLATFORMS:
        raise TestResultsError('Platform must be "web" or "android"')
    return platform


# ---------- Serialization ----------
def _counts(obj: TestRun | TestSuite) -> dict:
    return {
        "total_tests": obj.total_tests,
        "passed_tests": obj.passed_tests,
        "failed_tests": obj.failed_tests,
        "skipped_tests": obj.skipped_tests,
    }


def serialize_run(run: TestRun) -> dict:
    return {
        "id": run.id,
        "platform": run.platform,
        "environment": run.environment,
        "branch": run.branch,
        "commit_hash": run.commit_hash,
        "status": run.status,
        **_counts(run),
        "started_at": isoformat(run.started_at),
        "ended_at": isoformat(run.ended_at),
        "created_at": isoformat(run.created_at),
    }


def serialize_case(case: TestCase) -> dict:
    return {
        "id": case.id,
        "test_suite_id": case.test_suite_id,
        "name": case.name,
        "status": case.status,
        "duration_ms": case.duration_ms,
        "error_message": case.error_message,
        "error_stack": case.error_stack,
        "started_at": isoformat(case.started_at),
        "ended_at": isoformat(case.ended_at),
    }


def serialize_suite(suite: TestSuite, *, with_cases: bool = False) -> dict:
    out = {
        "id": suite.id,
        "test_run_id": suite.test_run_id,
        "name": suite.name,
        "file_path": suite.file_path,
        "category": suite.category,
        "status": suite.status,
        "duration_ms": suite.duration_ms,
        **_counts(suite),
        "started_at": isoformat(suite.started_at),
        "ended_at": isoformat(suite.ended_at),
    }
    if with_cases:
        out["cases"] = [serialize_case(c) for c in suite.cases]
    return out


# ---------- Incremental reporting ----------
def create_run(s: "Session", payload: dict) -> TestRun:
    run = TestRun(
        platform=_platform(payload),
        environment=clean_str(payload.get("environment")) or "local",
        branch=clean_str(payload.get("branch")),
        commit_hash=clean_str(payload.get("commit_hash")),
        status="running",
        started_at=datetime.utcnow(),
    )
    s.add(run)
    s.flush()
    return run


def create_suite(s: "Session", run: TestRun, payload: dict) -> TestSuite:
    name = clean_str(payload.get("name"))
    if not name:
        raise TestResultsError("Suite name is required")
    suite = TestSuite(
        test_run_id=run.id,
        name=name,
        file_path=clean_str(payload.get("file_path")),
        category=clean_str(payload.get("category")),
        status="running",
        started_at=datetime.utcnow(),
    )
    s.add(suite)
    s.flush()
    return suite


def _case_from_payload(payload: Any) -> TestCase:
    if not isinstance(payload, dict):
        raise TestResultsError("Each test must be an object")
    name = clean_str(payload.get("name"))
    if not name:
        raise TestResultsError("Test case name is required")
    now = datetime.utcnow()
    return TestCase(
        name=name,
        status=clean_str(payload.get("status")) or "pending",
        duration_ms=parse_int(payload.get("duration_ms")),
        error_message=payload.get("error_message") or None,
        error_stack=payload.get("error_stack") or None,
        started_at=now,
        ended_at=now,
    )


def create_case(s: "Session", suite: TestSuite, payload: dict) -> TestCase:
    case = _case_from_payload(payload)
    case.test_suite_id = suite.id
    s.add(case)
    s.flush()
    return case


def complete_suite(s: "Session", suite: TestSuite, payload: dict) -> TestSuite:
    statuses = [row[0] for row in s.query(TestCase.status).filter(TestCase.test_suite_id == suite.id)]
    counts = tally(statuses)
    _apply_counts(suite, counts)
    suite.status = "failed" if counts["failed"] else "passed"
    suite.duration_ms = parse_int(payload.get("duration_ms"))
    suite.ended_at = datetime.utcnow()
    return suite


def complete_run(s: "Session", run: TestRun) -> TestRun:
    statuses = [
        row[0]
        for row in s.query(TestCase.status)
        .join(TestSuite, TestCase.test_suite_id == TestSuite.id)
        .filter(TestSuite.test_run_id == run.id)
    ]
    counts = tally(statuses)
    _apply_counts(run, counts)
    run.status = "failed" if counts["failed"] else "completed"
    run.ended_at = datetime.utcnow()
    return run


# ---------- Bulk ----------
def bulk_create(s: "Session", payload: dict) -> TestRun:
    """
    Build a finished run with all of its suites and cases.

    Everything is validated and added to the session before a single flush;
    the caller commits, or rolls back on any error.
    """
    platform = _platform(payload)
    suites_in = payload.get("suites")
    if not isinstance(suites_in, list):
        raise TestResultsError("Suites array is required")

    now = datetime.utcnow()
    run = TestRun(
        platform=platform,
        environment=clean_str(payload.get("environment")) or "local",
        branch=clean_str(payload.get("branch")),
        commit_hash=clean_str(payload.get("commit_hash")),
        started_at=now,
        ended_at=now,
    )

    all_statuses: list[str] = []
    for raw in suites_in:
        if not isinstance(raw, dict):
            raise TestResultsError("Each suite must be an object")
        name = clean_str(raw.get("name"))
        if not name:
            raise TestResultsError("Suite name is required")
        tests = raw.get("tests") or []
        if not isinstance(tests, list):
            raise TestResultsError("Suite tests must be an array")

        cases = [_case_from_payload(t) for t in tests]
        counts = tally(c.status for c in cases)
        suite = TestSuite(
            name=name,
            file_path=clean_str(raw.get("file_path")),
            category=clean_str(raw.get("category")),
            duration_ms=parse_int(raw.get("duration_ms")),
            status="failed" if counts["failed"] else "passed",
            started_at=now,
            ended_at=now,
        )
        _apply_counts(suite, counts)
        suite.cases = cases
        run.suites.append(suite)
        all_statuses.extend(c.status for c in cases)

    run_counts = tally(all_statuses)
    _apply_counts(run, run_counts)
    run.status = "failed" if run_counts["failed"] else "completed"

    s.add(run)
    s.flush()
    return run


# ---------- Viewer ----------
def list_runs(s: "Session", args: dict) -> dict:
    page = max(parse_int(args.get("page"), 1) or 1, 1)
    limit = parse_int(args.get("limit"), DEFAULT_PAGE_SIZE) or DEFAULT_PAGE_SIZE
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    q = s.query(TestRun)
    if args.get("platform"):
        q = q.filter(TestRun.platform == args["platform"])
    if args.get("status"):
        q = q.filter(TestRun.status == args["status"])

    total = q.count()
    runs = (
        q.order_by(TestRun.created_at.desc(), TestRun.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return {
        "runs": [serialize_run(r) for r in runs],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }
