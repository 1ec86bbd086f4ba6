# Overview: Flask API route for the role-shaped dashboard summary.

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth
from ..services import dashboard_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@handle_errors("build dashboard")
def dashboard_route():
    """Query parameter: year (default current year)"""
    return jsonify(dashboard_service.get_dashboard(g.current_user, request.args.get("year", type=int)))
