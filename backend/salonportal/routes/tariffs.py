# Overview: Flask API routes for wage tariff tables; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth, require_permission
from ..services import tariff_service


tariffs_bp = Blueprint("tariffs", __name__, url_prefix="/api/tariffs")


@tariffs_bp.get("")
@require_auth
@require_permission("VIEW_TARIFFS")
@handle_errors("list tariffs")
def list_tariffs_route():
    tariffs = tariff_service.list_tariffs(request.args.get("year", type=int))
    return jsonify({"items": [t.to_dict() for t in tariffs], "count": len(tariffs)})


@tariffs_bp.get("/years")
@require_auth
@require_permission("VIEW_TARIFFS")
@handle_errors("list tariff years")
def list_years_route():
    return jsonify({"years": tariff_service.list_years()})


@tariffs_bp.post("")
@require_auth
@require_permission("MANAGE_TARIFFS")
@handle_errors("create tariff")
def create_tariff_route():
    tariff = tariff_service.create_tariff(request.get_json(silent=True) or {}, created_by=g.current_user)
    return jsonify(tariff.to_dict()), 201


@tariffs_bp.put("/<int:tariff_id>")
@require_auth
@require_permission("MANAGE_TARIFFS")
@handle_errors("update tariff")
def update_tariff_route(tariff_id: int):
    tariff = tariff_service.update_tariff(tariff_id, request.get_json(silent=True) or {})
    return jsonify(tariff.to_dict())


@tariffs_bp.delete("/<int:tariff_id>")
@require_auth
@require_permission("MANAGE_TARIFFS")
@handle_errors("delete tariff")
def delete_tariff_route(tariff_id: int):
    tariff_service.delete_tariff(tariff_id)
    return jsonify({"deleted": True})


@tariffs_bp.post("/copy-year")
@require_auth
@require_permission("MANAGE_TARIFFS")
@handle_errors("copy tariff year")
def copy_year_route():
    """
    Request body:
    {
        "source_year": 2025,
        "target_year": 2026,
        "adjustment_pct": 3.5,
        "replace": false       // overwrite an existing target year
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        source_year = int(data["source_year"])
        target_year = int(data["target_year"])
        adjustment_pct = float(data.get("adjustment_pct", 0))
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "source_year, target_year and a numeric adjustment_pct are required"}), 400

    copies = tariff_service.copy_year(
        source_year,
        target_year,
        adjustment_pct,
        created_by=g.current_user,
        replace=bool(data.get("replace", False)),
    )
    return jsonify({"items": [t.to_dict() for t in copies], "count": len(copies)}), 201
