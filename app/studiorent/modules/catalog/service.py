"""
Catalog service layer.
Instruments and rooms: listing, search, staff maintenance, and the row locks
the booking flow takes before checking availability.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.studiorent.audit import record_event
from app.studiorent.constants import INSTRUMENT_READY, INSTRUMENT_STATUSES
from app.studiorent.errors import BadRequest, Conflict, NotFound
from app.studiorent.utils import clean_str, money, parse_money, utcnow

from .models import Instrument, Room

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.studiorent.models import User


FEATURED_LIMIT = 3


# ---------- Instruments ----------
def list_instruments(s: "Session", *, search: str = "", include_unavailable: bool = False) -> list[Instrument]:
    q = s.query(Instrument)
    if not include_unavailable:
        q = q.filter(Instrument.inst_status == INSTRUMENT_READY)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Instrument.inst_name.ilike(like), Instrument.inst_type.ilike(like)))
    return q.order_by(Instrument.inst_name.asc()).all()


def featured_instruments(s: "Session", limit: int = FEATURED_LIMIT) -> list[Instrument]:
    return (
        s.query(Instrument)
        .filter(Instrument.inst_status == INSTRUMENT_READY)
        .order_by(Instrument.inst_name.asc())
        .limit(limit)
        .all()
    )


def get_instrument(s: "Session", inst_id: str, *, for_update: bool = False) -> Instrument:
    q = s.query(Instrument).filter(Instrument.inst_id == inst_id)
    if for_update:
        q = q.with_for_update()
    instrument = q.one_or_none()
    if not instrument:
        raise NotFound("Instrument not found.")
    return instrument


def validate_instrument_payload(payload: dict, *, creating: bool) -> list[str]:
    """Validate instrument creation/update payload. Returns list of errors."""
    errors = []
    if creating:
        if not clean_str(payload.get("inst_id")):
            errors.append("Instrument ID is required.")
        if not clean_str(payload.get("inst_name")):
            errors.append("Name is required.")
        if not clean_str(payload.get("inst_type")):
            errors.append("Type is required.")
    if "inst_rentalprice" in payload or creating:
        price = parse_money(payload.get("inst_rentalprice"))
        if price is None or price < 0:
            errors.append("Rental price must be a non-negative number.")
    status = clean_str(payload.get("inst_status")) or ""
    if status and status not in INSTRUMENT_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(INSTRUMENT_STATUSES)}")
    return errors


def create_instrument(s: "Session", payload: dict, user: "User") -> Instrument:
    errors = validate_instrument_payload(payload, creating=True)
    if errors:
        raise BadRequest(errors[0])

    inst_id = clean_str(payload["inst_id"])
    if s.get(Instrument, inst_id) is not None:
        raise Conflict(f"Instrument {inst_id} already exists.")

    now = utcnow()
    instrument = Instrument(
        inst_id=inst_id,
        inst_name=clean_str(payload["inst_name"]),
        inst_type=clean_str(payload["inst_type"]),
        inst_rentalprice=parse_money(payload.get("inst_rentalprice")),
        inst_status=clean_str(payload.get("inst_status")) or INSTRUMENT_READY,
        created_at=now,
        updated_at=now,
        updated_by_user_id=user.id,
    )
    s.add(instrument)
    s.flush()

    record_event(
        s,
        actor=user,
        action="instrument.create",
        entity_type="Instrument",
        entity_id=instrument.inst_id,
        metadata={"inst_name": instrument.inst_name, "inst_status": instrument.inst_status},
    )
    return instrument


def update_instrument(s: "Session", instrument: Instrument, payload: dict, user: "User", reason: str | None = None) -> Instrument:
    errors = validate_instrument_payload(payload, creating=False)
    if errors:
        raise BadRequest(errors[0])

    changes = {}

    new_name = clean_str(payload.get("inst_name")) or ""
    if new_name and new_name != instrument.inst_name:
        changes["inst_name"] = {"old": instrument.inst_name, "new": new_name}
        instrument.inst_name = new_name

    new_type = clean_str(payload.get("inst_type")) or ""
    if new_type and new_type != instrument.inst_type:
        changes["inst_type"] = {"old": instrument.inst_type, "new": new_type}
        instrument.inst_type = new_type

    if "inst_rentalprice" in payload:
        new_price = parse_money(payload.get("inst_rentalprice"))
        if new_price != instrument.inst_rentalprice:
            changes["inst_rentalprice"] = {"old": str(instrument.inst_rentalprice), "new": str(new_price)}
            instrument.inst_rentalprice = new_price

    new_status = clean_str(payload.get("inst_status")) or ""
    if new_status and new_status != instrument.inst_status:
        changes["inst_status"] = {"old": instrument.inst_status, "new": new_status}
        instrument.inst_status = new_status

    instrument.updated_at = utcnow()
    instrument.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="instrument.edit",
        entity_type="Instrument",
        entity_id=instrument.inst_id,
        reason=reason,
        metadata={"changes": changes},
    )
    return instrument


def set_instrument_status(s: "Session", instrument: Instrument, new_status: str, user: "User | None", reason: str | None = None) -> None:
    """Status change used by the booking flow and by staff."""
    if new_status not in INSTRUMENT_STATUSES:
        raise BadRequest(f"Invalid status: {new_status}")
    old_status = instrument.inst_status
    if old_status == new_status:
        return
    instrument.inst_status = new_status
    instrument.updated_at = utcnow()
    if user is not None:
        instrument.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="instrument.status_change",
        entity_type="Instrument",
        entity_id=instrument.inst_id,
        reason=reason,
        metadata={"from": old_status, "to": new_status},
    )


# ---------- Rooms ----------
def list_rooms(s: "Session", *, search: str = "") -> list[Room]:
    q = s.query(Room)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Room.room_name.ilike(like), Room.room_size.ilike(like)))
    return q.order_by(Room.room_name.asc()).all()


def get_room(s: "Session", room_id: str, *, for_update: bool = False) -> Room:
    q = s.query(Room).filter(Room.room_id == room_id)
    if for_update:
        q = q.with_for_update()
    room = q.one_or_none()
    if not room:
        raise NotFound("Room not found.")
    return room


def validate_room_payload(payload: dict, *, creating: bool) -> list[str]:
    errors = []
    if creating:
        if not clean_str(payload.get("room_id")):
            errors.append("Room ID is required.")
        if not clean_str(payload.get("room_name")):
            errors.append("Name is required.")
        if not clean_str(payload.get("room_size")):
            errors.append("Size is required.")
    if "room_rentrate" in payload or creating:
        rate = parse_money(payload.get("room_rentrate"))
        if rate is None or rate < 0:
            errors.append("Rent rate must be a non-negative number.")
    return errors


def create_room(s: "Session", payload: dict, user: "User") -> Room:
    errors = validate_room_payload(payload, creating=True)
    if errors:
        raise BadRequest(errors[0])

    room_id = clean_str(payload["room_id"])
    if s.get(Room, room_id) is not None:
        raise Conflict(f"Room {room_id} already exists.")

    now = utcnow()
    room = Room(
        room_id=room_id,
        room_name=clean_str(payload["room_name"]),
        room_size=clean_str(payload["room_size"]),
        room_rentrate=parse_money(payload.get("room_rentrate")),
        created_at=now,
        updated_at=now,
        updated_by_user_id=user.id,
    )
    s.add(room)
    s.flush()

    record_event(
        s,
        actor=user,
        action="room.create",
        entity_type="Room",
        entity_id=room.room_id,
        metadata={"room_name": room.room_name, "room_rentrate": str(room.room_rentrate)},
    )
    return room


def update_room(s: "Session", room: Room, payload: dict, user: "User", reason: str | None = None) -> Room:
    errors = validate_room_payload(payload, creating=False)
    if errors:
        raise BadRequest(errors[0])

    changes = {}

    new_name = clean_str(payload.get("room_name")) or ""
    if new_name and new_name != room.room_name:
        changes["room_name"] = {"old": room.room_name, "new": new_name}
        room.room_name = new_name

    new_size = clean_str(payload.get("room_size")) or ""
    if new_size and new_size != room.room_size:
        changes["room_size"] = {"old": room.room_size, "new": new_size}
        room.room_size = new_size

    if "room_rentrate" in payload:
        new_rate = parse_money(payload.get("room_rentrate"))
        if new_rate != room.room_rentrate:
            changes["room_rentrate"] = {"old": str(room.room_rentrate), "new": str(new_rate)}
            room.room_rentrate = new_rate

    room.updated_at = utcnow()
    room.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="room.edit",
        entity_type="Room",
        entity_id=room.room_id,
        reason=reason,
        metadata={"changes": changes},
    )
    return room


# ---------- Serialization ----------
def instrument_to_dict(instrument: Instrument) -> dict:
    return {
        "inst_id": instrument.inst_id,
        "inst_name": instrument.inst_name,
        "inst_type": instrument.inst_type,
        "inst_rentalprice": money(instrument.inst_rentalprice),
        "inst_status": instrument.inst_status,
    }


def room_to_dict(room: Room) -> dict:
    return {
        "room_id": room.room_id,
        "room_name": room.room_name,
        "room_size": room.room_size,
        "room_rentrate": money(room.room_rentrate),
    }
