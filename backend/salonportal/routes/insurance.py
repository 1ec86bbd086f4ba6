# Overview: Flask API routes for insurance power of attorney (fullmakt) and the product catalogue; parses input and returns JSON responses.

"""
Insurance Routes

POWER OF ATTORNEY
PUBLIC (no login): create, request code, sign. The salon owner fills the
form from a link; the one-time code is the signature.
ADMIN: list, stats, CSV export and resending codes require
VIEW_POWER_OF_ATTORNEY / MANAGE_POWER_OF_ATTORNEY.

PRODUCT CATALOGUE
VIEW_INSURANCE_PRODUCTS reads active products, tiers, coverage tables and
documents. MANAGE_INSURANCE_PRODUCTS edits them and also sees inactive
products.
"""

from flask import Blueprint, Response, request, jsonify, g

from ..decorators import handle_errors, require_auth, require_permission
from ..services import insurance_product_service, permission_service, poa_service
from ..services.poa_service import OtpError


insurance_bp = Blueprint("insurance", __name__, url_prefix="/api/insurance")


@insurance_bp.post("/power-of-attorney")
@handle_errors("create power of attorney")
def create_poa_route():
    """
    Request body:
    {
        "salon_name": "...", "org_number": "923456789",
        "contact_name": "...", "email": "...", "phone": "...",
        "consent_transfer": true, "consent_privacy": true,
        "has_existing_insurance": true,
        "previous_insurers": [{"company": "If", "policy_number": "123"}]
    }

    Creates the document and sends the first signing code.
    """
    poa = poa_service.create_power_of_attorney(request.get_json(silent=True) or {})
    poa = poa_service.issue_otp(poa.id)
    return jsonify({"id": poa.id, "status": poa.status, "otp_expires_at": poa.to_dict()["otp_expires_at"]}), 201


@insurance_bp.post("/power-of-attorney/<int:poa_id>/otp")
@handle_errors("issue signing code")
def issue_otp_route(poa_id: int):
    poa = poa_service.issue_otp(poa_id)
    return jsonify({"id": poa.id, "status": poa.status, "otp_expires_at": poa.to_dict()["otp_expires_at"]})


@insurance_bp.post("/power-of-attorney/<int:poa_id>/sign")
@handle_errors("sign power of attorney")
def sign_route(poa_id: int):
    """Request body: {"code": "123456"}"""
    data = request.get_json(silent=True) or {}
    if not data.get("code"):
        return jsonify({"error": "code is required"}), 400
    try:
        poa = poa_service.verify_and_sign(
            poa_id,
            str(data["code"]),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
    except OtpError as e:
        permission_service.log_security_event(
            user_id=None,
            event_type="OTP_FAILED",
            success=False,
            resource=request.path,
            action="SIGN",
            reason=str(e),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"error": str(e)}), 400
    return jsonify({"id": poa.id, "status": poa.status, "signed_at": poa.to_dict()["signed_at"]})


@insurance_bp.get("/power-of-attorney")
@require_auth
@require_permission("VIEW_POWER_OF_ATTORNEY")
@handle_errors("list powers of attorney")
def list_poa_route():
    """Query parameters: status (pending | expired | signed), search"""
    rows = poa_service.list_powers_of_attorney(
        status=request.args.get("status"),
        search=request.args.get("search"),
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@insurance_bp.get("/power-of-attorney/stats")
@require_auth
@require_permission("VIEW_POWER_OF_ATTORNEY")
@handle_errors("count powers of attorney")
def stats_route():
    return jsonify(poa_service.stats())


@insurance_bp.get("/power-of-attorney/export")
@require_auth
@require_permission("VIEW_POWER_OF_ATTORNEY")
@handle_errors("export powers of attorney")
def export_route():
    rows = poa_service.list_powers_of_attorney(status=request.args.get("status"))
    return Response(
        poa_service.export_csv(rows),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{poa_service.export_filename()}"'},
    )


@insurance_bp.get("/power-of-attorney/<int:poa_id>")
@require_auth
@require_permission("VIEW_POWER_OF_ATTORNEY")
@handle_errors("get power of attorney")
def get_poa_route(poa_id: int):
    return jsonify(poa_service.get_power_of_attorney(poa_id).to_dict())


@insurance_bp.post("/power-of-attorney/<int:poa_id>/notified")
@require_auth
@require_permission("MANAGE_POWER_OF_ATTORNEY")
@handle_errors("mark power of attorney notified")
def mark_notified_route(poa_id: int):
    return jsonify(poa_service.mark_admin_notified(poa_id).to_dict())


# -- Product catalogue --

def _can_manage_products() -> bool:
    return permission_service.user_has_permission(g.current_user.id, "MANAGE_INSURANCE_PRODUCTS")


@insurance_bp.get("/products")
@require_auth
@require_permission("VIEW_INSURANCE_PRODUCTS")
@handle_errors("list insurance products")
def list_products_route():
    """
    Query parameters:
    - product_type: salong | yrkesskade | cyber | reise | fritidsulykke | helse
    - include_inactive: default false, honoured for catalogue managers only
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true" and _can_manage_products()
    products = insurance_product_service.list_products(
        active_only=not include_inactive,
        product_type=request.args.get("product_type"),
    )
    return jsonify({"items": [p.to_dict(include_tiers=True) for p in products], "count": len(products)})


@insurance_bp.get("/products/<int:product_id>")
@require_auth
@require_permission("VIEW_INSURANCE_PRODUCTS")
@handle_errors("get insurance product")
def get_product_route(product_id: int):
    product = insurance_product_service.get_product(product_id)
    if not product.active and not _can_manage_products():
        return jsonify({"error": "Insurance product not found"}), 404
    return jsonify(product.to_dict(include_tiers=True))


@insurance_bp.post("/products")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("create insurance product")
def create_product_route():
    """
    Request body:
    {
        "name": "Salongforsikring",       // required
        "product_type": "salong",         // required
        "price_model": "fast",            // fast | per_arsverk | per_person
        "base_price": 4900,               // required, >= 0
        "description": "...", "icon_name": "Building2",
        "requires_employee_selection": false,
        "active": true, "sort_order": 0
    }
    """
    product = insurance_product_service.create_product(request.get_json(silent=True) or {})
    return jsonify(product.to_dict(include_tiers=True)), 201


@insurance_bp.put("/products/<int:product_id>")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("update insurance product")
def update_product_route(product_id: int):
    product = insurance_product_service.update_product(product_id, request.get_json(silent=True) or {})
    return jsonify(product.to_dict(include_tiers=True))


@insurance_bp.put("/products/<int:product_id>/active")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("change insurance product status")
def set_product_active_route(product_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("active"), bool):
        return jsonify({"error": "active must be a boolean"}), 400
    return jsonify(insurance_product_service.set_active(product_id, data["active"]).to_dict())


@insurance_bp.delete("/products/<int:product_id>")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("delete insurance product")
def delete_product_route(product_id: int):
    insurance_product_service.delete_product(product_id)
    return jsonify({"deleted": True})


@insurance_bp.post("/products/<int:product_id>/tiers")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("create insurance tier")
def create_tier_route(product_id: int):
    """Request body: {"tier_name": "Utvidet", "price": 6900, "tier_description": "...", "sort_order": 1}"""
    tier = insurance_product_service.create_tier(product_id, request.get_json(silent=True) or {})
    return jsonify(tier.to_dict()), 201


@insurance_bp.put("/tiers/<int:tier_id>")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("update insurance tier")
def update_tier_route(tier_id: int):
    tier = insurance_product_service.update_tier(tier_id, request.get_json(silent=True) or {})
    return jsonify(tier.to_dict())


@insurance_bp.delete("/tiers/<int:tier_id>")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("delete insurance tier")
def delete_tier_route(tier_id: int):
    insurance_product_service.delete_tier(tier_id)
    return jsonify({"deleted": True})


@insurance_bp.get("/products/<int:product_id>/coverage")
@require_auth
@require_permission("VIEW_INSURANCE_PRODUCTS")
@handle_errors("get coverage table")
def coverage_table_route(product_id: int):
    return jsonify(insurance_product_service.coverage_table(product_id))


@insurance_bp.post("/products/<int:product_id>/coverage")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("add coverage type")
def add_coverage_route(product_id: int):
    """Request body: {"coverage_type": "Innbo og løsøre"}"""
    data = request.get_json(silent=True) or {}
    return jsonify(insurance_product_service.add_coverage_type(product_id, data.get("coverage_type"))), 201


@insurance_bp.put("/tiers/<int:tier_id>/coverage")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("update coverage value")
def set_coverage_route(tier_id: int):
    """Request body: {"coverage_type": "Innbo og løsøre", "coverage_value": "2 MNOK"}"""
    data = request.get_json(silent=True) or {}
    if not data.get("coverage_type"):
        return jsonify({"error": "coverage_type is required"}), 400
    detail = insurance_product_service.set_coverage_value(tier_id, data["coverage_type"], data.get("coverage_value"))
    return jsonify(detail.to_dict())


@insurance_bp.delete("/products/<int:product_id>/coverage")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("delete coverage type")
def delete_coverage_route(product_id: int):
    """Query parameter: coverage_type"""
    coverage_type = request.args.get("coverage_type")
    if not coverage_type:
        return jsonify({"error": "coverage_type is required"}), 400
    return jsonify(insurance_product_service.delete_coverage_type(product_id, coverage_type))


@insurance_bp.get("/products/<int:product_id>/documents")
@require_auth
@require_permission("VIEW_INSURANCE_PRODUCTS")
@handle_errors("list insurance documents")
def list_documents_route(product_id: int):
    """Query parameter: tier_id (that tier's documents plus the product-wide ones)"""
    documents = insurance_product_service.list_documents(product_id, tier_id=request.args.get("tier_id", type=int))
    return jsonify({"items": [d.to_dict() for d in documents], "count": len(documents)})


@insurance_bp.post("/products/<int:product_id>/documents")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("add insurance document")
def add_document_route(product_id: int):
    """
    Request body:
    {
        "title": "Vilkår 2025",          // required
        "file_url": "https://...",        // required
        "document_type": "vilkar",        // vilkar | produktark | forsikringsbevis | reisekort | faq | annet
        "tier_id": null,                  // null = every tier
        "version": "2025-1"
    }
    """
    document = insurance_product_service.add_document(
        product_id, request.get_json(silent=True) or {}, uploaded_by=g.current_user,
    )
    return jsonify(document.to_dict()), 201


@insurance_bp.delete("/documents/<int:document_id>")
@require_auth
@require_permission("MANAGE_INSURANCE_PRODUCTS")
@handle_errors("delete insurance document")
def delete_document_route(document_id: int):
    insurance_product_service.delete_document(document_id)
    return jsonify({"deleted": True})
