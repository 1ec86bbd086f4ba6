# Overview: Flask API routes for KPI challenges; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import handle_errors, require_auth, require_permission
from ..services import challenge_service
from salonportal.time_utils import parse_iso_date, utcnow


challenges_bp = Blueprint("challenges", __name__, url_prefix="/api/challenges")


@challenges_bp.get("")
@require_auth
@require_permission("VIEW_CHALLENGES")
@handle_errors("list challenges")
def list_challenges_route():
    """Query parameter: year"""
    rows = challenge_service.list_challenges(request.args.get("year", type=int))
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)})


@challenges_bp.get("/current")
@require_auth
@require_permission("VIEW_CHALLENGES")
@handle_errors("list current challenges")
def current_challenges_route():
    """Query parameter: date (YYYY-MM-DD, default today)"""
    day = parse_iso_date(request.args.get("date")) or utcnow().date()
    rows = challenge_service.active_on(day)
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)})


@challenges_bp.get("/<int:challenge_id>")
@require_auth
@require_permission("VIEW_CHALLENGES")
@handle_errors("get challenge")
def get_challenge_route(challenge_id: int):
    return jsonify(challenge_service.get_challenge(challenge_id).to_dict())


@challenges_bp.post("")
@require_auth
@require_permission("MANAGE_CHALLENGES")
@handle_errors("create challenge")
def create_challenge_route():
    """
    Request body:
    {
        "title": "Merbehandling i mars",    // required
        "kpi_focus": "addon_share_percent",  // required
        "period_type": "month",              // month | quarter | half_year | year
        "year": 2025,                        // required
        "month": 3,                          // required; quarter / half number for longer periods
        "target_value": 25,
        "description": "...", "goal_description": "..."
    }
    """
    challenge = challenge_service.create_challenge(request.get_json(silent=True) or {})
    return jsonify(challenge.to_dict()), 201


@challenges_bp.put("/<int:challenge_id>")
@require_auth
@require_permission("MANAGE_CHALLENGES")
@handle_errors("update challenge")
def update_challenge_route(challenge_id: int):
    challenge = challenge_service.update_challenge(challenge_id, request.get_json(silent=True) or {})
    return jsonify(challenge.to_dict())


@challenges_bp.delete("/<int:challenge_id>")
@require_auth
@require_permission("MANAGE_CHALLENGES")
@handle_errors("delete challenge")
def delete_challenge_route(challenge_id: int):
    challenge_service.delete_challenge(challenge_id)
    return jsonify({"deleted": True})
