# Overview: Flask API routes for users, role changes and audit trails; parses input and returns JSON responses.

"""
User Administration Routes

SECURITY:
- Listing requires VIEW_USERS and is limited to the caller's scope
  (supplier admins see their own team)
- Role changes, activation and bulk updates require MANAGE_USERS
- Role audit requires VIEW_ROLE_AUDIT; security events VIEW_AUDIT_LOG
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth, require_permission
from ..permissions import SUPPLIER_ROLES, role_catalogue
from ..services import permission_service, user_service
from ..services.access_service import ScopeDeniedError, accessible_salon_ids


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _check_user_scope(user) -> None:
    caller = g.current_user
    if caller.role in SUPPLIER_ROLES:
        if user.supplier_id != caller.supplier_id:
            raise ScopeDeniedError("User is outside your access scope")
        return
    scope = accessible_salon_ids(caller)
    if scope is not None and user.salon_id not in scope:
        raise ScopeDeniedError("User is outside your access scope")


@users_bp.get("")
@require_auth
@require_permission("VIEW_USERS")
@handle_errors("list users")
def list_users_route():
    """
    Query parameters:
    - role: filter by role
    - search: matches email or name
    - include_inactive: default false
    """
    caller = g.current_user
    kwargs = {
        "role": request.args.get("role"),
        "search": request.args.get("search"),
        "include_inactive": request.args.get("include_inactive", "false").lower() == "true",
    }
    if caller.role in SUPPLIER_ROLES:
        kwargs["supplier_id"] = caller.supplier_id
    else:
        kwargs["salon_ids"] = accessible_salon_ids(caller)

    users = user_service.list_users(**kwargs)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.get("/roles")
@require_auth
@require_permission("VIEW_USERS")
def roles_route():
    """Role picker data: label, required association and grouped permissions per role."""
    return jsonify({"items": role_catalogue()})


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission("VIEW_USERS")
@handle_errors("get user")
def get_user_route(user_id: int):
    user = user_service.get_user(user_id)
    _check_user_scope(user)
    return jsonify(user.to_dict())


@users_bp.put("/<int:user_id>/role")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("change user role")
def change_role_route(user_id: int):
    """
    Request body:
    {
        "role": "salon_owner",   // required
        "salon_id": 3,           // for salon roles
        "district_id": null,     // for district_manager
        "supplier_id": null      // for supplier roles
    }
    """
    data = request.get_json(silent=True) or {}
    role = data.get("role")
    if not role:
        return jsonify({"error": "role is required"}), 400

    user = user_service.update_user_role(
        user_id,
        role,
        changed_by=g.current_user,
        salon_id=data.get("salon_id"),
        district_id=data.get("district_id"),
        supplier_id=data.get("supplier_id"),
    )
    return jsonify(user.to_dict())


@users_bp.post("/bulk-role")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("bulk update roles")
def bulk_role_route():
    """Request body: {"user_ids": [1, 2], "role": "stylist"}"""
    data = request.get_json(silent=True) or {}
    user_ids = data.get("user_ids")
    if not isinstance(user_ids, list):
        return jsonify({"error": "user_ids must be a list"}), 400
    result = user_service.bulk_update_roles(user_ids, data.get("role"), changed_by=g.current_user)
    return jsonify(result.to_dict())


@users_bp.put("/<int:user_id>/active")
@require_auth
@require_permission("MANAGE_USERS")
@handle_errors("change user status")
def set_active_route(user_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_active"), bool):
        return jsonify({"error": "is_active must be a boolean"}), 400
    user = user_service.set_user_active(user_id, data["is_active"], changed_by=g.current_user)
    return jsonify(user.to_dict())


@users_bp.put("/me")
@require_auth
@handle_errors("update profile")
def update_profile_route():
    data = request.get_json(silent=True) or {}
    user = user_service.update_profile(g.current_user.id, name=data.get("name"), phone=data.get("phone"))
    return jsonify(user.to_dict())


@users_bp.get("/role-changes")
@require_auth
@require_permission("VIEW_ROLE_AUDIT")
@handle_errors("list role changes")
def role_changes_route():
    rows = user_service.list_role_changes(
        user_id=request.args.get("user_id", type=int),
        limit=min(max(request.args.get("limit", 200, type=int), 1), 1000),
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@users_bp.get("/security-events")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
@handle_errors("list security events")
def security_events_route():
    events = permission_service.list_security_events(
        user_id=request.args.get("user_id", type=int),
        event_type=request.args.get("event_type"),
        limit=min(max(request.args.get("limit", 100, type=int), 1), 1000),
    )
    return jsonify({"items": [e.to_dict() for e in events], "count": len(events)})
