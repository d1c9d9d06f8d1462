from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.studiorent.db import db_session
from app.studiorent.errors import BadRequest
from app.studiorent.modules.rentals.service import (
    book_instrument,
    book_room,
    ensure_can_access,
    get_transaction,
    is_room_available,
    late_fee_preview,
    mark_as_paid,
    parse_period,
    rental_history,
    transaction_to_dict,
)
from app.studiorent.modules.students.service import resolve_booking_student, student_for_user
from app.studiorent.rbac import current_user, require_login
from app.studiorent.utils import clean_str, json_body, parse_money

bp = Blueprint("rentals", __name__)


# ---------- Availability ----------
@bp.get("/availability/room")
def room_availability():
    room_id = clean_str(request.args.get("roomId"))
    start_raw = clean_str(request.args.get("start"))
    end_raw = clean_str(request.args.get("end"))
    if not room_id or not start_raw or not end_raw:
        raise BadRequest("Missing roomId, start, or end parameters")

    start, end = parse_period(start_raw, end_raw)
    s = db_session()
    return jsonify({"isAvailable": is_room_available(s, room_id, start, end)})


# ---------- Bookings ----------
def _booking_payload(required_key: str) -> dict:
    payload = json_body()
    if not clean_str(payload.get(required_key)) or not clean_str(payload.get("rent_start")) or not clean_str(payload.get("rent_end")):
        raise BadRequest("Missing required booking details.")
    return payload


@bp.post("/bookings/room")
@require_login
def bookings_room():
    payload = _booking_payload("room_id")
    start, end = parse_period(payload["rent_start"], payload["rent_end"])

    s = db_session()
    user = current_user()
    student = resolve_booking_student(s, user, clean_str(payload.get("student_stdn_id")))
    trsc = book_room(
        s,
        student=student,
        room_id=clean_str(payload["room_id"]),
        start=start,
        end=end,
        payment_method=clean_str(payload.get("payment_method")) or current_app.config["DEFAULT_PAYMENT_METHOD"],
        user=user,
        points_divisor=current_app.config["POINTS_DIVISOR"],
    )
    s.commit()
    return (
        jsonify(
            {
                "message": "Room booking successful!",
                "transactionId": trsc.trsc_id,
                "transaction": transaction_to_dict(trsc),
            }
        ),
        201,
    )


@bp.post("/bookings/instrument")
@require_login
def bookings_instrument():
    payload = _booking_payload("instrument_id")
    start, end = parse_period(payload["rent_start"], payload["rent_end"])

    s = db_session()
    user = current_user()
    student = resolve_booking_student(s, user, clean_str(payload.get("student_stdn_id")))
    trsc = book_instrument(
        s,
        student=student,
        instrument_id=clean_str(payload["instrument_id"]),
        start=start,
        end=end,
        payment_method=clean_str(payload.get("payment_method")) or current_app.config["DEFAULT_PAYMENT_METHOD"],
        room_id=clean_str(payload.get("room_id")),
        user=user,
        points_divisor=current_app.config["POINTS_DIVISOR"],
    )
    s.commit()
    return (
        jsonify(
            {
                "message": "Booking successful!",
                "transactionId": trsc.trsc_id,
                "transaction": transaction_to_dict(trsc),
            }
        ),
        201,
    )


# ---------- Payment ----------
@bp.post("/payments/mark-as-paid")
@require_login
def payments_mark_as_paid():
    payload = json_body()
    trsc_id = clean_str(payload.get("transactionId"))
    if not trsc_id:
        raise BadRequest("Transaction ID is required.")

    s = db_session()
    user = current_user()
    trsc = get_transaction(s, trsc_id, for_update=True)
    own = student_for_user(s, user)
    ensure_can_access(trsc, user, own.stdn_id if own else None)

    mark_as_paid(s, trsc, rate_per_day=current_app.config["LATE_FEE_RATE_PER_DAY"], user=user)
    s.commit()
    current_app.logger.info("Transaction %s marked as paid (latefee=%s)", trsc.trsc_id, trsc.trsc_latefee)
    return jsonify(transaction_to_dict(trsc))


@bp.get("/rentals/<trsc_id>")
@require_login
def rental_detail(trsc_id: str):
    s = db_session()
    user = current_user()
    trsc = get_transaction(s, trsc_id)
    own = student_for_user(s, user)
    ensure_can_access(trsc, user, own.stdn_id if own else None)
    return jsonify(transaction_to_dict(trsc))


@bp.get("/rentals/<trsc_id>/late-fee")
@require_login
def rental_late_fee(trsc_id: str):
    s = db_session()
    user = current_user()
    trsc = get_transaction(s, trsc_id)
    own = student_for_user(s, user)
    ensure_can_access(trsc, user, own.stdn_id if own else None)

    rate = current_app.config["LATE_FEE_RATE_PER_DAY"]
    if request.args.get("rate"):
        rate = parse_money(request.args.get("rate"))
        if rate is None or rate < 0:
            raise BadRequest("rate must be a non-negative number.")
    return jsonify(late_fee_preview(trsc, rate))


# ---------- History ----------
@bp.get("/rental-history")
@require_login
def history():
    s = db_session()
    user = current_user()
    own = student_for_user(s, user)
    if own is None:
        return jsonify({"rentals": [], "rooms": [], "instruments": []})

    rentals = [transaction_to_dict(t) for t in rental_history(s, own.stdn_id)]
    return jsonify(
        {
            "rentals": rentals,
            "rooms": [r for r in rentals if r["Room_room_id"] and not r["instruments"]],
            "instruments": [r for r in rentals if r["instruments"]],
        }
    )
