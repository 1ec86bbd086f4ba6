# Overview: Flask API routes for employees (ansatte); parses input and returns JSON responses.

"""
Employee Routes

SECURITY: VIEW_EMPLOYEES / MANAGE_EMPLOYEES plus the salon scope of the
employee's salon on every call.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth, require_permission
from ..services import employee_service
from ..services.access_service import accessible_salon_ids, require_salon_access
from salonportal.time_utils import parse_iso_date, utcnow


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


def _scoped_employee(employee_id: int):
    employee = employee_service.get_employee(employee_id)
    require_salon_access(g.current_user, employee.salon_id)
    return employee


@employees_bp.get("")
@require_auth
@require_permission("VIEW_EMPLOYEES")
@handle_errors("list employees")
def list_employees_route():
    """Query parameters: salon_id, status (aktiv | permisjon | sluttet)"""
    salon_id = request.args.get("salon_id", type=int)
    if salon_id is not None:
        require_salon_access(g.current_user, salon_id)
    employees = employee_service.list_employees(
        salon_ids=accessible_salon_ids(g.current_user),
        salon_id=salon_id,
        status=request.args.get("status"),
    )
    return jsonify({"items": [e.to_dict() for e in employees], "count": len(employees)})


@employees_bp.post("")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
@handle_errors("create employee")
def create_employee_route():
    data = request.get_json(silent=True) or {}
    salon_id = data.pop("salon_id", None)
    if salon_id is None:
        return jsonify({"error": "salon_id is required"}), 400
    require_salon_access(g.current_user, salon_id)
    employee = employee_service.create_employee(salon_id, data)
    return jsonify(employee.to_dict()), 201


@employees_bp.post("/import")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
@handle_errors("import employees")
def import_employees_route():
    """Request body: {"salon_id": 3, "rows": [{...employee fields...}]}"""
    data = request.get_json(silent=True) or {}
    salon_id = data.get("salon_id")
    if salon_id is None:
        return jsonify({"error": "salon_id is required"}), 400
    require_salon_access(g.current_user, salon_id)
    result = employee_service.import_employees(salon_id, data.get("rows"))
    return jsonify(result.to_dict()), 201 if result.created else 200


@employees_bp.get("/<int:employee_id>")
@require_auth
@require_permission("VIEW_EMPLOYEES")
@handle_errors("get employee")
def get_employee_route(employee_id: int):
    return jsonify(_scoped_employee(employee_id).to_dict())


@employees_bp.put("/<int:employee_id>")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
@handle_errors("update employee")
def update_employee_route(employee_id: int):
    _scoped_employee(employee_id)
    data = request.get_json(silent=True) or {}
    data.pop("salon_id", None)
    employee = employee_service.update_employee(employee_id, data)
    return jsonify(employee.to_dict())


@employees_bp.post("/<int:employee_id>/terminate")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
@handle_errors("terminate employee")
def terminate_employee_route(employee_id: int):
    _scoped_employee(employee_id)
    data = request.get_json(silent=True) or {}
    employee = employee_service.terminate_employee(employee_id, parse_iso_date(data.get("end_date")))
    return jsonify(employee.to_dict())


@employees_bp.put("/<int:employee_id>/user")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
@handle_errors("link employee user")
def link_user_route(employee_id: int):
    """Request body: {"user_id": 12} or {"user_id": null} to unlink"""
    _scoped_employee(employee_id)
    data = request.get_json(silent=True) or {}
    employee = employee_service.link_user(employee_id, data.get("user_id"))
    return jsonify(employee.to_dict())


@employees_bp.post("/<int:employee_id>/create-user")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
@handle_errors("create employee user")
def create_employee_user_route(employee_id: int):
    _scoped_employee(employee_id)
    data = request.get_json(silent=True) or {}
    result = employee_service.create_user_for_employee(employee_id, data.get("role", "stylist"))
    return jsonify(result), 201


@employees_bp.get("/<int:employee_id>/tariff")
@require_auth
@require_permission("VIEW_EMPLOYEES")
@handle_errors("suggest tariff")
def suggest_tariff_route(employee_id: int):
    _scoped_employee(employee_id)
    year = request.args.get("year", utcnow().year, type=int)
    return jsonify(employee_service.suggest_tariff(employee_id, year))
