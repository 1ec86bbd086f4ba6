# Overview: Flask API routes for salons, chains and districts; parses input and returns JSON responses.

"""
Salon Routes

SECURITY:
- Listing and reading are limited to the caller's salon scope
- Salon leaders (EDIT_OWN_SALON) may update contact details of salons in
  their scope; everything else needs MANAGE_SALONS
- Chains and districts are administered with MANAGE_SALONS
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_any_permission, require_auth, require_permission
from ..services import permission_service, salon_service
from ..services.access_service import accessible_salon_ids, require_salon_access
from ..services.salon_service import OWNER_EDITABLE_FIELDS


salons_bp = Blueprint("salons", __name__, url_prefix="/api/salons")


@salons_bp.get("")
@require_auth
@require_permission("VIEW_SALONS")
@handle_errors("list salons")
def list_salons_route():
    """
    Query parameters:
    - district_id, chain_id: filters
    - search: name, city or org number
    - include_inactive: default false
    """
    salons = salon_service.list_salons(
        salon_ids=accessible_salon_ids(g.current_user),
        district_id=request.args.get("district_id", type=int),
        chain_id=request.args.get("chain_id", type=int),
        search=request.args.get("search"),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
    )
    return jsonify({"items": [s.to_dict() for s in salons], "count": len(salons)})


@salons_bp.post("")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("create salon")
def create_salon_route():
    salon = salon_service.create_salon(request.get_json(silent=True) or {})
    return jsonify(salon.to_dict()), 201


@salons_bp.get("/<int:salon_id>")
@require_auth
@require_permission("VIEW_SALONS")
@handle_errors("get salon")
def get_salon_route(salon_id: int):
    require_salon_access(g.current_user, salon_id)
    return jsonify(salon_service.get_salon(salon_id).to_dict())


@salons_bp.put("/<int:salon_id>")
@require_auth
@require_any_permission("MANAGE_SALONS", "EDIT_OWN_SALON")
@handle_errors("update salon")
def update_salon_route(salon_id: int):
    user = g.current_user
    require_salon_access(user, salon_id)

    allowed_fields = None
    if not permission_service.user_has_permission(user.id, "MANAGE_SALONS"):
        allowed_fields = OWNER_EDITABLE_FIELDS

    salon = salon_service.update_salon(salon_id, request.get_json(silent=True) or {}, allowed_fields=allowed_fields)
    return jsonify(salon.to_dict())


@salons_bp.delete("/<int:salon_id>")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("deactivate salon")
def deactivate_salon_route(salon_id: int):
    return jsonify(salon_service.deactivate_salon(salon_id).to_dict())


# -- Chains --

@salons_bp.get("/chains")
@require_auth
@require_permission("VIEW_SALONS")
@handle_errors("list chains")
def list_chains_route():
    chains = salon_service.list_chains()
    return jsonify({"items": [c.to_dict() for c in chains], "count": len(chains)})


@salons_bp.post("/chains")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("create chain")
def create_chain_route():
    data = request.get_json(silent=True) or {}
    chain = salon_service.create_chain(data.get("name"), data.get("org_number"))
    return jsonify(chain.to_dict()), 201


@salons_bp.delete("/chains/<int:chain_id>")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("delete chain")
def delete_chain_route(chain_id: int):
    salon_service.delete_chain(chain_id)
    return jsonify({"deleted": True})


@salons_bp.post("/chains/<int:chain_id>/salons/<int:salon_id>")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("add salon to chain")
def add_chain_salon_route(chain_id: int, salon_id: int):
    return jsonify(salon_service.add_salon_to_chain(chain_id, salon_id).to_dict())


@salons_bp.delete("/chains/<int:chain_id>/salons/<int:salon_id>")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("remove salon from chain")
def remove_chain_salon_route(chain_id: int, salon_id: int):
    return jsonify(salon_service.remove_salon_from_chain(chain_id, salon_id).to_dict())


# -- Districts --

@salons_bp.get("/districts")
@require_auth
@require_permission("VIEW_SALONS")
@handle_errors("list districts")
def list_districts_route():
    districts = salon_service.list_districts()
    return jsonify({"items": [d.to_dict() for d in districts], "count": len(districts)})


@salons_bp.post("/districts")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("create district")
def create_district_route():
    data = request.get_json(silent=True) or {}
    district = salon_service.create_district(data.get("name"), data.get("description"))
    return jsonify(district.to_dict()), 201


@salons_bp.put("/districts/<int:district_id>")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("update district")
def update_district_route(district_id: int):
    data = request.get_json(silent=True) or {}
    district = salon_service.update_district(district_id, name=data.get("name"), description=data.get("description"))
    return jsonify(district.to_dict())


@salons_bp.delete("/districts/<int:district_id>")
@require_auth
@require_permission("MANAGE_SALONS")
@handle_errors("delete district")
def delete_district_route(district_id: int):
    salon_service.delete_district(district_id)
    return jsonify({"deleted": True})
