# Overview: Flask API routes for invitations and onboarding; parses input and returns JSON responses.

"""
Invitation Routes

SECURITY:
- Admin endpoints require MANAGE_INVITATIONS
- /public/<token> and /public/<token>/accept are unauthenticated; the
  token itself is the credential and is single use
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth, require_permission
from ..services import invitation_service, session_service


invitations_bp = Blueprint("invitations", __name__, url_prefix="/api/invitations")


@invitations_bp.get("")
@require_auth
@require_permission("MANAGE_INVITATIONS")
@handle_errors("list invitations")
def list_invitations_route():
    """Query parameters: status (pending | expired | accepted)"""
    invitations = invitation_service.list_invitations(status=request.args.get("status"))
    return jsonify({"items": [i.to_dict() for i in invitations], "count": len(invitations)})


@invitations_bp.post("")
@require_auth
@require_permission("MANAGE_INVITATIONS")
@handle_errors("create invitation")
def create_invitation_route():
    """
    Request body:
    {
        "email": "ny@salong.no",   // required
        "role": "stylist",         // required
        "salon_id": 3,             // as the role requires
        "district_id": null,
        "supplier_id": null,
        "send_email": true
    }

    Returns the invitation with its onboarding URL and whether the email
    went out (201).
    """
    data = request.get_json(silent=True) or {}
    if not data.get("role"):
        return jsonify({"error": "role is required"}), 400

    result = invitation_service.create_invitation(
        data.get("email"),
        data["role"],
        salon_id=data.get("salon_id"),
        district_id=data.get("district_id"),
        supplier_id=data.get("supplier_id"),
        created_by=g.current_user,
        hubspot_contact_id=data.get("hubspot_contact_id"),
        send_email=data.get("send_email", True) is not False,
    )
    return jsonify(result.to_dict()), 201


@invitations_bp.post("/<int:invitation_id>/resend")
@require_auth
@require_permission("MANAGE_INVITATIONS")
@handle_errors("resend invitation")
def resend_invitation_route(invitation_id: int):
    result = invitation_service.resend_invitation(invitation_id)
    return jsonify(result.to_dict())


@invitations_bp.delete("/<int:invitation_id>")
@require_auth
@require_permission("MANAGE_INVITATIONS")
@handle_errors("delete invitation")
def delete_invitation_route(invitation_id: int):
    invitation_service.delete_invitation(invitation_id)
    return jsonify({"deleted": True})


@invitations_bp.get("/public/<token>")
@handle_errors("look up invitation")
def lookup_invitation_route(token: str):
    """What the onboarding page shows before the user picks a password."""
    invitation = invitation_service.get_invitation_by_token(token)
    return jsonify({
        "email": invitation.email,
        "role": invitation.role,
        "status": invitation.status,
        "salon_name": invitation.salon.name if invitation.salon else None,
        "district_name": invitation.district.name if invitation.district else None,
        "supplier_name": invitation.supplier.name if invitation.supplier else None,
        "expires_at": invitation.to_dict()["expires_at"],
    })


@invitations_bp.post("/public/<token>/accept")
@handle_errors("accept invitation")
def accept_invitation_route(token: str):
    """
    Request body: {"password": "...", "name": "...", "phone": "..."}

    Creates the user and logs them in.
    """
    data = request.get_json(silent=True) or {}
    if not data.get("password"):
        return jsonify({"error": "password is required"}), 400

    user = invitation_service.accept_invitation(
        token,
        password=data["password"],
        name=data.get("name"),
        phone=data.get("phone"),
    )
    session, session_token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({"user": user.to_dict(), "token": session_token, "session": session.to_dict()}), 201
