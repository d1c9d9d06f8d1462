from __future__ import annotations

import math
import secrets
import string
import time
from datetime import datetime, timedelta
from decimal import Decimal

_ID_ALPHABET = string.ascii_uppercase + string.digits
_SECONDS_PER_HOUR = 3600
_ONE_DAY = timedelta(days=1)


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open intervals [start, end): touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


def billable_hours(start: datetime, end: datetime) -> int:
    """Started hours, minimum one."""
    seconds = (end - start).total_seconds()
    return max(1, math.ceil(seconds / _SECONDS_PER_HOUR))


def rental_price(rate: Decimal | None, start: datetime, end: datetime) -> Decimal:
    return Decimal(rate or 0) * billable_hours(start, end)


def late_fee_days(rent_end: datetime, returned_at: datetime | None) -> int:
    """Whole or started days past rent_end; 0 when returned on time or not yet returned."""
    if returned_at is None or returned_at <= rent_end:
        return 0
    return math.ceil((returned_at - rent_end) / _ONE_DAY)


def late_fee(rent_end: datetime, returned_at: datetime | None, rate_per_day: Decimal) -> Decimal:
    return Decimal(rate_per_day) * late_fee_days(rent_end, returned_at)


def generate_transaction_id(now_ms: int | None = None) -> str:
    """TRX + epoch millis + 5 random base36 chars, e.g. TRX1718000000000K3F9Q."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(5))
    return f"TRX{now_ms}{suffix}"
