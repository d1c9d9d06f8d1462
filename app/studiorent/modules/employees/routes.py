from flask import Blueprint, jsonify

from app.studiorent.db import db_session
from app.studiorent.modules.employees.models import Employee
from app.studiorent.modules.employees.service import create_employee, employee_to_dict
from app.studiorent.rbac import current_user, require_permission
from app.studiorent.utils import json_body

bp = Blueprint("employees", __name__)


@bp.get("/employees")
@require_permission("employees.manage")
def employees_list():
    s = db_session()
    employees = s.query(Employee).order_by(Employee.empl_nik.asc()).all()
    return jsonify({"employees": [employee_to_dict(e) for e in employees]})


@bp.post("/employees")
@require_permission("employees.manage")
def employees_create():
    s = db_session()
    employee = create_employee(s, json_body(), current_user())
    s.commit()
    return jsonify(employee_to_dict(employee)), 201
