from __future__ import annotations

import re
from typing import TYPE_CHECKING

from app.studiorent.audit import record_event, student_scope
from app.studiorent.constants import STUDENT_ID_PATTERN
from app.studiorent.errors import BadRequest, Conflict, Forbidden, NotFound
from app.studiorent.rbac import is_staff
from app.studiorent.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.studiorent.models import User
    from app.studiorent.modules.students.models import Student


_STUDENT_ID_RE = re.compile(STUDENT_ID_PATTERN)


def is_valid_student_id(stdn_id: str | None) -> bool:
    return bool(stdn_id) and _STUDENT_ID_RE.match(stdn_id) is not None


def validate_student_payload(payload: dict) -> list[str]:
    """Validate student profile payload. Returns list of errors."""
    errors = []
    stdn_id = clean_str(payload.get("stdn_id")) or ""
    if not is_valid_student_id(stdn_id):
        errors.append("Student ID must be 8 to 10 digits.")
    if not clean_str(payload.get("stdn_name")):
        errors.append("Full name is required.")
    if not clean_str(payload.get("stdn_telpnum")):
        errors.append("Telephone number is required.")
    return errors


def create_student(s: "Session", payload: dict, *, user: "User | None", actor: "User | None" = None) -> "Student":
    """Create a student profile, optionally linked to a login account."""
    from app.studiorent.modules.students.models import Student

    errors = validate_student_payload(payload)
    if errors:
        raise BadRequest(errors[0])

    stdn_id = clean_str(payload["stdn_id"])
    if s.get(Student, stdn_id) is not None:
        raise Conflict(f"Student ID {stdn_id} is already registered.")

    student = Student(
        stdn_id=stdn_id,
        stdn_name=clean_str(payload["stdn_name"]),
        stdn_telpnum=clean_str(payload["stdn_telpnum"]),
        user_id=user.id if user else None,
    )
    s.add(student)
    s.flush()

    record_event(
        s,
        actor=actor or user,
        action="student.create",
        entity_type="Student",
        entity_id=student.stdn_id,
        scope_key=student_scope(student.stdn_id),
        metadata={"stdn_name": student.stdn_name},
    )
    return student


def get_student(s: "Session", stdn_id: str) -> "Student":
    from app.studiorent.modules.students.models import Student

    student = s.get(Student, stdn_id)
    if not student:
        raise NotFound(f"Student {stdn_id} not found.")
    return student


def student_for_user(s: "Session", user: "User") -> "Student | None":
    from app.studiorent.modules.students.models import Student

    return s.query(Student).filter(Student.user_id == user.id).one_or_none()


def resolve_booking_student(s: "Session", user: "User", requested_id: str | None) -> "Student":
    """
    Work out whose booking this is.
    Students always book for themselves; staff must name the student.
    """
    requested_id = clean_str(requested_id)
    own = student_for_user(s, user)

    if is_staff(user):
        if requested_id:
            return get_student(s, requested_id)
        if own:
            return own
        raise BadRequest("student_stdn_id is required when booking on behalf of a student.")

    if own is None:
        raise Forbidden("A student profile is required to book.")
    if requested_id and requested_id != own.stdn_id:
        raise Forbidden("You can only book for your own student account.")
    return own


def student_to_dict(student: "Student") -> dict:
    return {
        "stdn_id": student.stdn_id,
        "stdn_name": student.stdn_name,
        "stdn_telpnum": student.stdn_telpnum,
    }
