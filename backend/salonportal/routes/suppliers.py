# Overview: Flask API routes for suppliers, brands and partner salons; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY:
- Supplier users only ever see their own supplier
- Creating suppliers, brands and salon links requires MANAGE_SUPPLIERS
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth, require_permission
from ..permissions import SUPPLIER_ROLES
from ..services import supplier_service
from ..services.access_service import require_supplier_access


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_SUPPLIERS")
@handle_errors("list suppliers")
def list_suppliers_route():
    user = g.current_user
    suppliers = supplier_service.list_suppliers(
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        supplier_id=user.supplier_id if user.role in SUPPLIER_ROLES else None,
    )
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)})


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
@handle_errors("create supplier")
def create_supplier_route():
    supplier = supplier_service.create_supplier(request.get_json(silent=True) or {})
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("VIEW_SUPPLIERS")
@handle_errors("get supplier")
def get_supplier_route(supplier_id: int):
    require_supplier_access(g.current_user, supplier_id)
    supplier = supplier_service.get_supplier(supplier_id)
    data = supplier.to_dict()
    data["brands"] = [b.to_dict() for b in supplier_service.list_brands(supplier_id)]
    return jsonify(data)


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
@handle_errors("update supplier")
def update_supplier_route(supplier_id: int):
    supplier = supplier_service.update_supplier(supplier_id, request.get_json(silent=True) or {})
    return jsonify(supplier.to_dict())


@suppliers_bp.post("/<int:supplier_id>/brands")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
@handle_errors("add brand")
def add_brand_route(supplier_id: int):
    data = request.get_json(silent=True) or {}
    brand = supplier_service.add_brand(supplier_id, data.get("name"))
    return jsonify(brand.to_dict()), 201


@suppliers_bp.put("/brands/<int:brand_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
@handle_errors("update brand")
def update_brand_route(brand_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_active"), bool):
        return jsonify({"error": "is_active must be a boolean"}), 400
    return jsonify(supplier_service.set_brand_active(brand_id, data["is_active"]).to_dict())


@suppliers_bp.get("/<int:supplier_id>/salons")
@require_auth
@require_permission("VIEW_SUPPLIERS")
@handle_errors("list supplier salons")
def list_linked_salons_route(supplier_id: int):
    require_supplier_access(g.current_user, supplier_id)
    salons = supplier_service.list_linked_salons(supplier_id)
    return jsonify({"items": [s.to_dict() for s in salons], "count": len(salons)})


@suppliers_bp.post("/<int:supplier_id>/salons/<int:salon_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
@handle_errors("link supplier salon")
def link_salon_route(supplier_id: int, salon_id: int):
    link = supplier_service.link_salon(supplier_id, salon_id)
    return jsonify(link.to_dict()), 201


@suppliers_bp.delete("/<int:supplier_id>/salons/<int:salon_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
@handle_errors("unlink supplier salon")
def unlink_salon_route(supplier_id: int, salon_id: int):
    removed = supplier_service.unlink_salon(supplier_id, salon_id)
    if not removed:
        return jsonify({"error": "Salon is not linked to this supplier"}), 404
    return jsonify({"deleted": True})


@suppliers_bp.get("/<int:supplier_id>/team")
@require_auth
@require_permission("VIEW_USERS")
@handle_errors("list supplier team")
def list_team_route(supplier_id: int):
    require_supplier_access(g.current_user, supplier_id)
    team = supplier_service.list_team(supplier_id)
    return jsonify({"items": [u.to_dict() for u in team], "count": len(team)})
