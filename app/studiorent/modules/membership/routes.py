from flask import Blueprint, current_app, jsonify

from app.studiorent.db import db_session
from app.studiorent.errors import Forbidden
from app.studiorent.modules.membership.service import create_membership, get_membership, membership_to_dict
from app.studiorent.modules.students.service import student_for_user
from app.studiorent.rbac import current_user, require_login

bp = Blueprint("membership", __name__)


def _own_student(s):
    student = student_for_user(s, current_user())
    if student is None:
        raise Forbidden("Cannot use membership: no student profile on this account.")
    return student


@bp.get("/membership")
@require_login
def membership_get():
    s = db_session()
    student = _own_student(s)
    return jsonify({"membership": membership_to_dict(get_membership(s, student.stdn_id))})


@bp.post("/membership")
@require_login
def membership_create():
    s = db_session()
    student = _own_student(s)
    membership = create_membership(
        s,
        student,
        current_user(),
        term_years=current_app.config["MEMBERSHIP_TERM_YEARS"],
    )
    s.commit()
    current_app.logger.info("Membership %s created for student %s", membership.mmbr_id, student.stdn_id)
    return jsonify({"message": "Membership created successfully!", "membership": membership_to_dict(membership)}), 201
