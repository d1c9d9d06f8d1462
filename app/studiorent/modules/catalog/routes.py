from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.studiorent.db import db_session
from app.studiorent.modules.catalog.service import (
    create_instrument,
    create_room,
    featured_instruments,
    get_instrument,
    get_room,
    instrument_to_dict,
    list_instruments,
    list_rooms,
    room_to_dict,
    set_instrument_status,
    update_instrument,
    update_room,
)
from app.studiorent.rbac import current_user, require_permission
from app.studiorent.utils import clean_str, json_body

bp = Blueprint("catalog", __name__)


# ---------- Instruments ----------
@bp.get("/instruments")
def instruments_list():
    s = db_session()
    search = (request.args.get("q") or "").strip()
    include_unavailable = (request.args.get("status") or "").strip().lower() == "all"
    instruments = list_instruments(s, search=search, include_unavailable=include_unavailable)
    return jsonify({"instruments": [instrument_to_dict(i) for i in instruments]})


@bp.get("/instruments/featured")
def instruments_featured():
    s = db_session()
    return jsonify({"instruments": [instrument_to_dict(i) for i in featured_instruments(s)]})


@bp.get("/instruments/<inst_id>")
def instrument_detail(inst_id: str):
    s = db_session()
    return jsonify(instrument_to_dict(get_instrument(s, inst_id)))


@bp.post("/instruments")
@require_permission("catalog.edit")
def instrument_create():
    s = db_session()
    instrument = create_instrument(s, json_body(), current_user())
    s.commit()
    return jsonify(instrument_to_dict(instrument)), 201


@bp.patch("/instruments/<inst_id>")
@require_permission("catalog.edit")
def instrument_update(inst_id: str):
    s = db_session()
    payload = json_body()
    instrument = get_instrument(s, inst_id, for_update=True)
    update_instrument(s, instrument, payload, current_user(), reason=clean_str(payload.get("reason")))
    s.commit()
    return jsonify(instrument_to_dict(instrument))


@bp.post("/instruments/<inst_id>/status")
@require_permission("catalog.edit")
def instrument_status(inst_id: str):
    s = db_session()
    payload = json_body()
    instrument = get_instrument(s, inst_id, for_update=True)
    set_instrument_status(
        s,
        instrument,
        clean_str(payload.get("status")) or "",
        current_user(),
        reason=clean_str(payload.get("reason")),
    )
    s.commit()
    return jsonify(instrument_to_dict(instrument))


# ---------- Rooms ----------
@bp.get("/rooms")
def rooms_list():
    s = db_session()
    search = (request.args.get("q") or "").strip()
    return jsonify({"rooms": [room_to_dict(r) for r in list_rooms(s, search=search)]})


@bp.get("/rooms/<room_id>")
def room_detail(room_id: str):
    s = db_session()
    return jsonify(room_to_dict(get_room(s, room_id)))


@bp.post("/rooms")
@require_permission("catalog.edit")
def room_create():
    s = db_session()
    room = create_room(s, json_body(), current_user())
    s.commit()
    return jsonify(room_to_dict(room)), 201


@bp.patch("/rooms/<room_id>")
@require_permission("catalog.edit")
def room_update(room_id: str):
    s = db_session()
    payload = json_body()
    room = get_room(s, room_id, for_update=True)
    update_room(s, room, payload, current_user(), reason=clean_str(payload.get("reason")))
    s.commit()
    return jsonify(room_to_dict(room))
