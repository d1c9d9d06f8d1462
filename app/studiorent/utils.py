from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from flask import request

from app.studiorent.errors import BadRequest


def json_body() -> dict:
    """Request JSON as a dict; anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object.")
    return data


def clean_str(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value) -> datetime | None:
    """
    Parse an ISO-8601 timestamp into naive UTC.
    Aware values are converted; naive values are taken as UTC already.
    Returns None for blank or unparseable input.
    """
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        try:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError:
            # offset pushes the value outside year 1..9999
            return None
    return dt


def parse_money(value) -> Decimal | None:
    if value is None or str(value).strip() == "":
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def iso(dt) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def money(amount: Decimal | None) -> float:
    return float(amount or 0)
