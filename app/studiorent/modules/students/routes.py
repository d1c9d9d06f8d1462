from flask import Blueprint, jsonify

from app.studiorent.db import db_session
from app.studiorent.errors import NotFound
from app.studiorent.modules.membership.service import membership_to_dict
from app.studiorent.modules.students.service import student_for_user, student_to_dict
from app.studiorent.rbac import current_user, require_login

bp = Blueprint("students", __name__)


@bp.get("/profile")
@require_login
def profile():
    s = db_session()
    student = student_for_user(s, current_user())
    if student is None:
        raise NotFound("Student profile not found.")
    return jsonify(
        {
            "student": student_to_dict(student),
            "membership": membership_to_dict(student.membership),
        }
    )
