"""
Membership and loyalty points.

Points are earned on every booking made by a student who holds a membership:
one point per POINTS_DIVISOR currency units of the transaction total, rounded
down. Awards only ever add points.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING

from app.studiorent.audit import record_event, student_scope
from app.studiorent.errors import Conflict
from app.studiorent.utils import iso, utcnow

from .models import Membership

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.studiorent.models import User
    from app.studiorent.modules.students.models import Student

logger = logging.getLogger(__name__)

DEFAULT_POINTS_DIVISOR = 10


def points_for_price(total: Decimal | int | float, divisor: int = DEFAULT_POINTS_DIVISOR) -> int:
    """floor(total / divisor), never negative."""
    if divisor <= 0:
        raise ValueError("divisor must be positive")
    amount = Decimal(str(total))
    if amount <= 0:
        return 0
    return int((amount / divisor).to_integral_value(rounding=ROUND_FLOOR))


def add_years(d: date, years: int) -> date:
    """Same calendar day `years` later; Feb 29 falls back to Feb 28."""
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        return d.replace(year=d.year + years, day=28)


def get_membership(s: "Session", stdn_id: str) -> Membership | None:
    return s.query(Membership).filter(Membership.student_id == stdn_id).one_or_none()


def create_membership(
    s: "Session",
    student: "Student",
    user: "User | None",
    *,
    term_years: int = 1,
    today: date | None = None,
) -> Membership:
    if get_membership(s, student.stdn_id) is not None:
        raise Conflict("You already have a membership.")

    today = today or date.today()
    membership = Membership(
        student_id=student.stdn_id,
        mmbr_points=0,
        mmbr_creationdate=today,
        mmbr_expirydate=add_years(today, term_years),
        updated_at=utcnow(),
    )
    s.add(membership)
    s.flush()

    record_event(
        s,
        actor=user,
        action="membership.create",
        entity_type="Membership",
        entity_id=membership.mmbr_id,
        scope_key=student_scope(student.stdn_id),
        metadata={"expires": membership.mmbr_expirydate.isoformat()},
    )
    return membership


def award_points(
    s: "Session",
    stdn_id: str,
    total: Decimal,
    *,
    divisor: int = DEFAULT_POINTS_DIVISOR,
    user: "User | None" = None,
    transaction_id: str | None = None,
) -> Membership | None:
    """
    Credit points for a transaction total.
    Returns None when the student is not a member; that is not an error.
    """
    membership = (
        s.query(Membership)
        .filter(Membership.student_id == stdn_id)
        .with_for_update()
        .one_or_none()
    )
    if membership is None:
        return None

    points = points_for_price(total, divisor)
    if points == 0:
        return membership

    membership.mmbr_points = (membership.mmbr_points or 0) + points
    membership.updated_at = utcnow()

    record_event(
        s,
        actor=user,
        action="membership.points_award",
        entity_type="Membership",
        entity_id=membership.mmbr_id,
        scope_key=student_scope(stdn_id),
        metadata={"points": points, "total": membership.mmbr_points, "transaction_id": transaction_id},
    )
    logger.info("Awarded %s points to member %s. New total: %s", points, membership.mmbr_id, membership.mmbr_points)
    return membership


def membership_to_dict(membership: Membership | None) -> dict | None:
    if membership is None:
        return None
    return {
        "mmbr_id": membership.mmbr_id,
        "mmbr_points": membership.mmbr_points,
        "mmbr_creationdate": iso(membership.mmbr_creationdate),
        "mmbr_expirydate": iso(membership.mmbr_expirydate),
        "Student_stdn_id": membership.student_id,
    }
