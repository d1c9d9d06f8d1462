"""
Change feed.

Clients poll ``/api/changes?since=<last id>`` to refresh catalog, membership
and rental views. Events come straight from the audit log: catalog events are
public to signed-in users, student-scoped events only to that student and staff.
"""
from __future__ import annotations

import json

from flask import Blueprint, jsonify, request
from sqlalchemy import or_

from app.studiorent.audit import student_scope
from app.studiorent.constants import CATALOG_ENTITIES, STUDENT_ENTITIES
from app.studiorent.db import db_session
from app.studiorent.errors import BadRequest
from app.studiorent.models import AuditEvent
from app.studiorent.modules.students.service import student_for_user
from app.studiorent.rbac import current_user, is_staff, require_login
from app.studiorent.utils import iso

bp = Blueprint("changes", __name__)

FEED_LIMIT = 200
FEED_ENTITIES = CATALOG_ENTITIES | STUDENT_ENTITIES


def _event_to_dict(ev: AuditEvent) -> dict:
    return {
        "id": ev.id,
        "created_at": iso(ev.created_at),
        "action": ev.action,
        "table": ev.entity_type,
        "entity_id": ev.entity_id,
        "metadata": json.loads(ev.metadata_json) if ev.metadata_json else None,
    }


@bp.get("/changes")
@require_login
def changes_feed():
    try:
        since = int(request.args.get("since") or 0)
    except ValueError:
        raise BadRequest("since must be an integer event id.")
    table = (request.args.get("table") or "").strip()
    if table and table not in FEED_ENTITIES:
        raise BadRequest(f"Unknown table. Must be one of: {', '.join(sorted(FEED_ENTITIES))}")

    s = db_session()
    user = current_user()

    q = s.query(AuditEvent).filter(AuditEvent.id > since)
    if table:
        q = q.filter(AuditEvent.entity_type == table)
    else:
        q = q.filter(AuditEvent.entity_type.in_(FEED_ENTITIES))

    if not is_staff(user):
        own = student_for_user(s, user)
        visible = [AuditEvent.entity_type.in_(CATALOG_ENTITIES)]
        if own is not None:
            visible.append(AuditEvent.scope_key == student_scope(own.stdn_id))
        q = q.filter(or_(*visible))

    events = q.order_by(AuditEvent.id.asc()).limit(FEED_LIMIT).all()
    last_id = events[-1].id if events else since
    return jsonify({"events": [_event_to_dict(ev) for ev in events], "last_id": last_id})
