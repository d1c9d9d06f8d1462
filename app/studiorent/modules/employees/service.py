from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.studiorent.audit import record_event
from app.studiorent.errors import BadRequest, Conflict, InternalError
from app.studiorent.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.studiorent.models import User
    from app.studiorent.modules.employees.models import Employee

logger = logging.getLogger(__name__)

VALID_GENDERS = ("Male", "Female")


def validate_employee_payload(payload: dict) -> list[str]:
    """Validate employee creation payload. Returns list of errors."""
    errors = []
    if not clean_str(payload.get("empl_nik")):
        errors.append("NIK is required.")
    if not clean_str(payload.get("empl_name")):
        errors.append("Name is required.")
    gender = clean_str(payload.get("empl_gender")) or ""
    if gender and gender not in VALID_GENDERS:
        errors.append(f"Invalid gender. Must be one of: {', '.join(VALID_GENDERS)}")
    return errors


def create_employee(s: "Session", payload: dict, user: "User | None") -> "Employee":
    from app.studiorent.modules.employees.models import Employee

    errors = validate_employee_payload(payload)
    if errors:
        raise BadRequest(errors[0])

    nik = clean_str(payload["empl_nik"])
    if s.get(Employee, nik) is not None:
        raise Conflict(f"Employee {nik} already exists.")

    employee = Employee(
        empl_nik=nik,
        empl_name=clean_str(payload["empl_name"]),
        empl_email=(clean_str(payload.get("empl_email")) or "").lower() or None,
        empl_gender=clean_str(payload.get("empl_gender")),
        empl_telpnum=clean_str(payload.get("empl_telpnum")),
    )
    s.add(employee)
    s.flush()

    record_event(
        s,
        actor=user,
        action="employee.create",
        entity_type="Employee",
        entity_id=employee.empl_nik,
        metadata={"empl_name": employee.empl_name},
    )
    return employee


def assign_employee(s: "Session") -> "Employee":
    """
    Pick the employee who handles a new transaction.
    Deterministic: lowest NIK wins.
    """
    from app.studiorent.modules.employees.models import Employee

    employee = s.query(Employee).order_by(Employee.empl_nik.asc()).first()
    if employee is None:
        logger.error("No employees on record; cannot assign a transaction handler")
        raise InternalError("Internal server error: Could not assign employee.")
    return employee


def employee_to_dict(employee: "Employee") -> dict:
    return {
        "empl_nik": employee.empl_nik,
        "empl_name": employee.empl_name,
        "empl_email": employee.empl_email,
        "empl_gender": employee.empl_gender,
        "empl_telpnum": employee.empl_telpnum,
    }
