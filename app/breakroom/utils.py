from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import jsonify, request


def json_error(message: str, status: int):
    """Uniform error body used by every API handler."""
    return jsonify({"message": message}), status


def json_payload() -> dict:
    """Request body as a dict (JSON or form); never raises on malformed input."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def clean_str(value: Any) -> str | None:
    """Strip strings; empty or non-string values become None."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def parse_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_bool(value: Any) -> bool:
    # multipart forms send "true"/"false" strings
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
