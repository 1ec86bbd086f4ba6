# Overview: Flask API routes for login, logout and the current user.

"""
Authentication API routes

SECURITY:
- Self-registration does not exist; accounts come from invitations
- Failed logins are written to security_events
- Logout revokes the presented session token
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth
from ..services import auth_service, permission_service, session_service
from ..services.access_service import accessible_salon_ids


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
@handle_errors("login user")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    user = auth_service.authenticate(email, password)
    if not user:
        permission_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            resource=request.path,
            action="LOGIN",
            reason=f"Invalid credentials for {email}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=user_agent,
        ip_address=ip_address
    )
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "token": token,
        "session": session.to_dict(),
        "message": "Login successful"
    }), 200


@auth_bp.post("/logout")
@require_auth
@handle_errors("logout user")
def logout_route():
    token = request.headers["Authorization"].split(" ", 1)[1]
    session_service.revoke_session(token, reason="User logout")
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="LOGOUT",
        success=True,
        resource=request.path,
        action="LOGOUT",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        salon_id=g.current_user.salon_id,
    )
    return jsonify({"message": "Logged out"})


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    scope = accessible_salon_ids(user)
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "salon_ids": None if scope is None else sorted(scope),
    })


@auth_bp.post("/change-password")
@require_auth
@handle_errors("change password")
def change_password_route():
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")
    if not all([current_password, new_password]):
        return jsonify({"error": "current_password and new_password required"}), 400

    auth_service.validate_password_strength(new_password)
    auth_service.change_password(g.current_user.id, current_password, new_password)
    # Other devices must log in again
    session_service.revoke_all_user_sessions(g.current_user.id, reason="Password changed")
    session, token = session_service.create_session(
        user_id=g.current_user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({"message": "Password changed", "token": token, "session": session.to_dict()})
