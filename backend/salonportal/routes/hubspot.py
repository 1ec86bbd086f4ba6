# Overview: Flask API routes for the HubSpot CRM integration; parses input and returns JSON responses.

"""
HubSpot Routes

SECURITY: every endpoint requires MANAGE_HUBSPOT. The OAuth state is a
random value kept in the Flask session and checked on callback.
"""

import secrets

from flask import Blueprint, request, jsonify, g, session

from ..decorators import handle_errors, require_auth, require_permission
from ..integrations.hubspot import HubSpotError
from ..services import hubspot_service
from ..services.hubspot_service import HubSpotNotConnected


hubspot_bp = Blueprint("hubspot", __name__, url_prefix="/api/hubspot")


def _crm_error(e: Exception):
    if isinstance(e, HubSpotNotConnected):
        return jsonify({"error": str(e), "connected": False}), 409
    return jsonify({"error": str(e)}), 502


@hubspot_bp.get("/status")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("read HubSpot status")
def status_route():
    return jsonify(hubspot_service.connection_status())


@hubspot_bp.get("/authorize")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("start HubSpot authorization")
def authorize_route():
    state = secrets.token_urlsafe(24)
    session["hubspot_oauth_state"] = state
    return jsonify({"authorize_url": hubspot_service.build_authorize_url(state), "state": state})


@hubspot_bp.post("/callback")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("complete HubSpot authorization")
def callback_route():
    """Request body: {"code": "...", "state": "..."}"""
    data = request.get_json(silent=True) or {}
    expected = session.pop("hubspot_oauth_state", None)
    if not expected or data.get("state") != expected:
        return jsonify({"error": "OAuth state mismatch"}), 400
    try:
        connection = hubspot_service.exchange_code(data.get("code"), connected_by=g.current_user)
    except HubSpotError as e:
        return _crm_error(e)
    return jsonify(connection.to_dict())


@hubspot_bp.delete("/connection")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("disconnect HubSpot")
def disconnect_route():
    return jsonify({"disconnected": hubspot_service.disconnect()})


@hubspot_bp.get("/companies")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("search HubSpot companies")
def search_companies_route():
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"error": "q is required"}), 400
    try:
        companies = hubspot_service.search_companies(query)
    except (HubSpotError, HubSpotNotConnected) as e:
        return _crm_error(e)
    return jsonify({"items": companies, "count": len(companies)})


@hubspot_bp.get("/companies/<company_id>/contacts")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("list HubSpot contacts")
def company_contacts_route(company_id: str):
    try:
        contacts = hubspot_service.get_company_contacts(company_id)
    except (HubSpotError, HubSpotNotConnected) as e:
        return _crm_error(e)
    return jsonify({"items": contacts, "count": len(contacts)})


@hubspot_bp.post("/companies/<company_id>/import")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("import HubSpot company")
def import_company_route(company_id: str):
    """Query parameter invite=true also invites the company's contacts."""
    invite = request.args.get("invite", "false").lower() == "true"
    try:
        if invite:
            result = hubspot_service.invite_contacts(company_id, created_by=g.current_user)
        else:
            result = hubspot_service.import_company(company_id)
    except (HubSpotError, HubSpotNotConnected) as e:
        return _crm_error(e)
    return jsonify(result.to_dict()), 201 if result.created else 200


@hubspot_bp.post("/owners/sync")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("sync HubSpot owners")
def sync_owners_route():
    try:
        mappings = hubspot_service.sync_owners()
    except (HubSpotError, HubSpotNotConnected) as e:
        return _crm_error(e)
    return jsonify({"items": [m.to_dict() for m in mappings], "count": len(mappings)})


@hubspot_bp.get("/owners")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("list HubSpot owners")
def list_owners_route():
    mappings = hubspot_service.list_owner_mappings()
    return jsonify({"items": [m.to_dict() for m in mappings], "count": len(mappings)})


@hubspot_bp.put("/owners/<int:mapping_id>")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("map HubSpot owner")
def set_owner_district_route(mapping_id: int):
    """Request body: {"district_id": 2} or {"district_id": null}"""
    data = request.get_json(silent=True) or {}
    mapping = hubspot_service.set_owner_district(mapping_id, data.get("district_id"))
    return jsonify(mapping.to_dict())


@hubspot_bp.get("/subscription-types")
@require_auth
@require_permission("MANAGE_HUBSPOT")
@handle_errors("list HubSpot subscription types")
def subscription_types_route():
    try:
        types = hubspot_service.get_subscription_types()
    except (HubSpotError, HubSpotNotConnected) as e:
        return _crm_error(e)
    return jsonify({"items": types, "count": len(types)})
