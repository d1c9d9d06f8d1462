"""
Rentals service layer.

Booking side-effects (transaction row, instrument link, instrument status,
membership points) are applied to one session and only become visible when
the caller commits. Any exception before the commit leaves nothing behind.

The room or instrument row is locked (SELECT ... FOR UPDATE on Postgres)
before the availability check so two concurrent bookings of the same
resource serialize instead of both passing the check.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.studiorent.audit import record_event, student_scope
from app.studiorent.constants import (
    INSTRUMENT_IN_USE,
    INSTRUMENT_READY,
    PAYMENT_METHODS,
    PAYMENT_PAID,
    PAYMENT_UNPAID,
)
from app.studiorent.errors import BadRequest, BookingConflictError, Conflict, Forbidden, NotFound
from app.studiorent.modules.catalog.service import get_instrument, get_room, set_instrument_status
from app.studiorent.modules.employees.service import assign_employee
from app.studiorent.modules.membership.service import DEFAULT_POINTS_DIVISOR, award_points
from app.studiorent.rbac import is_staff
from app.studiorent.utils import clean_str, iso, money, parse_datetime, utcnow

from .models import RentalTransaction, TransactionInstrument
from .utils import generate_transaction_id, late_fee, late_fee_days, rental_price

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.studiorent.models import User
    from app.studiorent.modules.students.models import Student

logger = logging.getLogger(__name__)


def parse_period(start_raw, end_raw) -> tuple[datetime, datetime]:
    start = parse_datetime(start_raw)
    end = parse_datetime(end_raw)
    if start is None or end is None or start >= end:
        raise BadRequest("Invalid date range")
    return start, end


def validate_payment_method(method: str | None) -> str:
    method = clean_str(method) or ""
    if method not in PAYMENT_METHODS:
        raise BadRequest(f"Invalid payment method. Must be one of: {', '.join(PAYMENT_METHODS)}")
    return method


# ---------- Overlap check ----------
def count_room_conflicts(
    s: "Session",
    room_id: str,
    start: datetime,
    end: datetime,
    *,
    exclude_transaction_id: str | None = None,
) -> int:
    """Bookings of the room whose [rentstart, rentend) intersects [start, end)."""
    q = (
        s.query(func.count(RentalTransaction.trsc_id))
        .filter(RentalTransaction.room_id == room_id)
        .filter(RentalTransaction.trsc_rentstart < end)
        .filter(RentalTransaction.trsc_rentend > start)
    )
    if exclude_transaction_id:
        q = q.filter(RentalTransaction.trsc_id != exclude_transaction_id)
    return q.scalar() or 0


def is_room_available(s: "Session", room_id: str, start: datetime, end: datetime) -> bool:
    get_room(s, room_id)
    return count_room_conflicts(s, room_id, start, end) == 0


# ---------- Bookings ----------
def _new_transaction(
    s: "Session",
    *,
    student: "Student",
    start: datetime,
    end: datetime,
    total: Decimal,
    payment_method: str,
    room_id: str | None,
) -> RentalTransaction:
    employee = assign_employee(s)
    trsc = RentalTransaction(
        trsc_id=generate_transaction_id(),
        trsc_transactiondate=utcnow(),
        trsc_paymentmethod=payment_method,
        trsc_rentstart=start,
        trsc_rentend=end,
        trsc_totalprice=total,
        trsc_latefee=Decimal("0"),
        payment_status=PAYMENT_UNPAID,
        student_id=student.stdn_id,
        employee_nik=employee.empl_nik,
        room_id=room_id,
    )
    s.add(trsc)
    s.flush()
    return trsc


def book_room(
    s: "Session",
    *,
    student: "Student",
    room_id: str,
    start: datetime,
    end: datetime,
    payment_method: str = "Card",
    user: "User | None" = None,
    points_divisor: int = DEFAULT_POINTS_DIVISOR,
) -> RentalTransaction:
    payment_method = validate_payment_method(payment_method)
    room = get_room(s, room_id, for_update=True)

    if count_room_conflicts(s, room.room_id, start, end):
        raise BookingConflictError("This time slot is no longer available.")

    total = rental_price(room.room_rentrate, start, end)
    trsc = _new_transaction(
        s,
        student=student,
        start=start,
        end=end,
        total=total,
        payment_method=payment_method,
        room_id=room.room_id,
    )
    award_points(s, student.stdn_id, total, divisor=points_divisor, user=user, transaction_id=trsc.trsc_id)

    record_event(
        s,
        actor=user,
        action="booking.room",
        entity_type="RentalTransaction",
        entity_id=trsc.trsc_id,
        scope_key=student_scope(student.stdn_id),
        metadata={"room_id": room.room_id, "start": iso(start), "end": iso(end), "total": str(total)},
    )
    logger.info("Room %s booked by student %s as %s (total=%s)", room.room_id, student.stdn_id, trsc.trsc_id, total)
    return trsc


def book_instrument(
    s: "Session",
    *,
    student: "Student",
    instrument_id: str,
    start: datetime,
    end: datetime,
    payment_method: str = "Card",
    room_id: str | None = None,
    user: "User | None" = None,
    points_divisor: int = DEFAULT_POINTS_DIVISOR,
) -> RentalTransaction:
    payment_method = validate_payment_method(payment_method)
    instrument = get_instrument(s, instrument_id, for_update=True)
    if instrument.inst_status != INSTRUMENT_READY:
        raise BookingConflictError(
            f"Instrument '{instrument.inst_id}' is not available. Current status: {instrument.inst_status}"
        )

    total = rental_price(instrument.inst_rentalprice, start, end)

    room = None
    if room_id:
        room = get_room(s, room_id, for_update=True)
        if count_room_conflicts(s, room.room_id, start, end):
            raise BookingConflictError("This time slot is no longer available.")
        total += rental_price(room.room_rentrate, start, end)

    trsc = _new_transaction(
        s,
        student=student,
        start=start,
        end=end,
        total=total,
        payment_method=payment_method,
        room_id=room.room_id if room else None,
    )
    trsc.instrument_links.append(TransactionInstrument(instrument=instrument))
    set_instrument_status(s, instrument, INSTRUMENT_IN_USE, user, reason=f"Booked in {trsc.trsc_id}")
    s.flush()
    award_points(s, student.stdn_id, total, divisor=points_divisor, user=user, transaction_id=trsc.trsc_id)

    record_event(
        s,
        actor=user,
        action="booking.instrument",
        entity_type="RentalTransaction",
        entity_id=trsc.trsc_id,
        scope_key=student_scope(student.stdn_id),
        metadata={
            "instrument_id": instrument.inst_id,
            "room_id": trsc.room_id,
            "start": iso(start),
            "end": iso(end),
            "total": str(total),
        },
    )
    logger.info(
        "Instrument %s booked by student %s as %s (total=%s)",
        instrument.inst_id,
        student.stdn_id,
        trsc.trsc_id,
        total,
    )
    return trsc


# ---------- Payment ----------
def get_transaction(s: "Session", trsc_id: str, *, for_update: bool = False) -> RentalTransaction:
    q = s.query(RentalTransaction).filter(RentalTransaction.trsc_id == trsc_id)
    if for_update:
        q = q.with_for_update()
    trsc = q.one_or_none()
    if not trsc:
        raise NotFound("Transaction not found.")
    return trsc


def ensure_can_access(trsc: RentalTransaction, user: "User", own_student_id: str | None) -> None:
    if is_staff(user):
        return
    if own_student_id is None or trsc.student_id != own_student_id:
        raise Forbidden("You do not have access to this transaction.")


def mark_as_paid(
    s: "Session",
    trsc: RentalTransaction,
    *,
    rate_per_day: Decimal,
    user: "User | None" = None,
    now: datetime | None = None,
) -> RentalTransaction:
    """
    Simulated payment: the rental is returned at the moment it is paid.
    Late fee is charged per started day past trsc_rentend.
    """
    if trsc.payment_status == PAYMENT_PAID:
        raise Conflict("Transaction is already paid.")

    now = now or utcnow()
    trsc.payment_status = PAYMENT_PAID
    trsc.trsc_returndate = now
    trsc.trsc_latefee = late_fee(trsc.trsc_rentend, now, rate_per_day)

    for instrument in trsc.instruments:
        if instrument.inst_status == INSTRUMENT_IN_USE:
            set_instrument_status(s, instrument, INSTRUMENT_READY, user, reason=f"Returned with {trsc.trsc_id}")

    record_event(
        s,
        actor=user,
        action="payment.mark_paid",
        entity_type="RentalTransaction",
        entity_id=trsc.trsc_id,
        scope_key=student_scope(trsc.student_id),
        metadata={"latefee": str(trsc.trsc_latefee), "returned_at": iso(now)},
    )
    if trsc.trsc_latefee:
        logger.info("Transaction %s returned late; fee=%s", trsc.trsc_id, trsc.trsc_latefee)
    return trsc


def late_fee_preview(trsc: RentalTransaction, rate_per_day: Decimal, *, now: datetime | None = None) -> dict:
    """Late fee if the rental were returned now (or at its recorded return date)."""
    returned_at = trsc.trsc_returndate or now or utcnow()
    return {
        "transactionId": trsc.trsc_id,
        "late_days": late_fee_days(trsc.trsc_rentend, returned_at),
        "rate_per_day": money(rate_per_day),
        "late_fee": money(late_fee(trsc.trsc_rentend, returned_at, rate_per_day)),
    }


# ---------- History ----------
def rental_history(s: "Session", stdn_id: str) -> list[RentalTransaction]:
    return (
        s.query(RentalTransaction)
        .filter(RentalTransaction.student_id == stdn_id)
        .order_by(RentalTransaction.trsc_transactiondate.desc(), RentalTransaction.trsc_id.desc())
        .all()
    )


def transaction_to_dict(trsc: RentalTransaction) -> dict:
    return {
        "trsc_id": trsc.trsc_id,
        "trsc_transactiondate": iso(trsc.trsc_transactiondate),
        "trsc_paymentmethod": trsc.trsc_paymentmethod,
        "trsc_rentstart": iso(trsc.trsc_rentstart),
        "trsc_rentend": iso(trsc.trsc_rentend),
        "trsc_returndate": iso(trsc.trsc_returndate),
        "trsc_totalprice": money(trsc.trsc_totalprice),
        "trsc_latefee": money(trsc.trsc_latefee),
        "payment_status": trsc.payment_status,
        "Student_stdn_id": trsc.student_id,
        "Employee_empl_nik": trsc.employee_nik,
        "Room_room_id": trsc.room_id,
        "Room": {"room_name": trsc.room.room_name} if trsc.room else None,
        "instruments": [
            {"inst_id": i.inst_id, "inst_name": i.inst_name, "inst_type": i.inst_type} for i in trsc.instruments
        ],
    }
