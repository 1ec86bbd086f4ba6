# Overview: Flask API routes for bonus rules, sales imports and bonus calculation; parses input and returns JSON responses.

"""
Bonus Routes

SECURITY:
- Supplier users only reach their own supplier (require_supplier_access)
- Salon and district users only see calculations and growth rows for
  salons in their scope
- Rules: MANAGE_BONUS_RULES; imports: IMPORT_SALES; calculation runs,
  status changes and overrides: RUN_BONUS_CALCULATION; reports:
  SEND_BONUS_REPORTS
"""

from flask import Blueprint, request, jsonify, g

from ..calculator.validator import validate_records, validate_upload
from ..decorators import handle_errors, require_auth, require_permission
from ..services import bonus_rule_service, bonus_service, sales_import_service
from ..services.access_service import accessible_salon_ids, require_salon_access, require_supplier_access
from salonportal.time_utils import utcnow


bonus_bp = Blueprint("bonus", __name__, url_prefix="/api/bonus")


# -- Rules --

@bonus_bp.get("/suppliers/<int:supplier_id>/rules")
@require_auth
@require_permission("VIEW_BONUS")
@handle_errors("list bonus rules")
def list_rules_route(supplier_id: int):
    require_supplier_access(g.current_user, supplier_id)
    active_only = request.args.get("active_only", "false").lower() == "true"
    rules = bonus_rule_service.list_rules(supplier_id, active_only=active_only)
    return jsonify({"items": [r.to_dict() for r in rules], "count": len(rules)})


@bonus_bp.post("/suppliers/<int:supplier_id>/rules")
@require_auth
@require_permission("MANAGE_BONUS_RULES")
@handle_errors("create bonus rule")
def create_rule_route(supplier_id: int):
    require_supplier_access(g.current_user, supplier_id)
    rule = bonus_rule_service.create_rule(supplier_id, request.get_json(silent=True) or {})
    return jsonify(rule.to_dict()), 201


@bonus_bp.put("/rules/<int:rule_id>")
@require_auth
@require_permission("MANAGE_BONUS_RULES")
@handle_errors("update bonus rule")
def update_rule_route(rule_id: int):
    require_supplier_access(g.current_user, bonus_rule_service.get_rule(rule_id).supplier_id)
    rule = bonus_rule_service.update_rule(rule_id, request.get_json(silent=True) or {})
    return jsonify(rule.to_dict())


@bonus_bp.delete("/rules/<int:rule_id>")
@require_auth
@require_permission("MANAGE_BONUS_RULES")
@handle_errors("delete bonus rule")
def delete_rule_route(rule_id: int):
    require_supplier_access(g.current_user, bonus_rule_service.get_rule(rule_id).supplier_id)
    bonus_rule_service.delete_rule(rule_id)
    return jsonify({"deleted": True})


# -- Sales imports --

@bonus_bp.post("/suppliers/<int:supplier_id>/imports")
@require_auth
@require_permission("IMPORT_SALES")
@handle_errors("import sales report")
def import_sales_route(supplier_id: int):
    """
    Upload a report as multipart form data (file + optional period) or
    post JSON {"period": "2025-03", "rows": [...]}.

    Returns 400 with every validation error when the report is rejected;
    nothing is stored in that case.
    """
    require_supplier_access(g.current_user, supplier_id)

    if "file" in request.files:
        upload = request.files["file"]
        period = request.form.get("period") or None
        filename = upload.filename
        rows, errors = validate_upload(upload.read(), filename, default_period=period)
    else:
        data = request.get_json(silent=True) or {}
        filename = data.get("filename")
        rows, errors = validate_records(data.get("rows"), default_period=data.get("period"))

    if errors:
        return jsonify({"error": "The report was rejected", "errors": errors}), 400

    sales_import = sales_import_service.import_sales(
        supplier_id,
        rows,
        filename=filename,
        imported_by=g.current_user,
    )
    return jsonify(sales_import.to_dict()), 201


@bonus_bp.get("/suppliers/<int:supplier_id>/imports")
@require_auth
@require_permission("VIEW_BONUS")
@handle_errors("list sales imports")
def list_imports_route(supplier_id: int):
    require_supplier_access(g.current_user, supplier_id)
    imports = sales_import_service.list_imports(supplier_id)
    return jsonify({"items": [i.to_dict() for i in imports], "count": len(imports)})


@bonus_bp.delete("/imports/<int:import_id>")
@require_auth
@require_permission("IMPORT_SALES")
@handle_errors("delete sales import")
def delete_import_route(import_id: int):
    require_supplier_access(g.current_user, sales_import_service.get_import(import_id).supplier_id)
    sales_import_service.delete_import(import_id)
    return jsonify({"deleted": True})


@bonus_bp.get("/suppliers/<int:supplier_id>/sales")
@require_auth
@require_permission("VIEW_BONUS")
@handle_errors("list imported sales")
def list_sales_route(supplier_id: int):
    """Query parameters: period, match_status (matched | unmatched | manual)"""
    require_supplier_access(g.current_user, supplier_id)
    sales = sales_import_service.list_sales(
        supplier_id,
        request.args.get("period"),
        match_status=request.args.get("match_status"),
    )
    scope = accessible_salon_ids(g.current_user)
    if scope is not None and g.current_user.supplier_id != supplier_id:
        sales = [s for s in sales if s.salon_id in scope]
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)})


@bonus_bp.post("/sales/<int:sale_id>/match")
@require_auth
@require_permission("IMPORT_SALES")
@handle_errors("match sales row")
def match_sale_route(sale_id: int):
    """Request body: {"salon_id": 3}"""
    data = request.get_json(silent=True) or {}
    salon_id = data.get("salon_id")
    if salon_id is None:
        return jsonify({"error": "salon_id is required"}), 400
    require_supplier_access(g.current_user, sales_import_service.get_sale(sale_id).supplier_id)
    updated = sales_import_service.match_sale(sale_id, salon_id)
    return jsonify({"items": [s.to_dict() for s in updated], "count": len(updated)})


@bonus_bp.get("/suppliers/<int:supplier_id>/cumulative-baselines")
@require_auth
@require_permission("RUN_BONUS_CALCULATION")
@handle_errors("list cumulative baselines")
def list_cumulative_baselines_route(supplier_id: int):
    rows = sales_import_service.list_cumulative_baselines(supplier_id)
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@bonus_bp.put("/suppliers/<int:supplier_id>/cumulative-baselines")
@require_auth
@require_permission("RUN_BONUS_CALCULATION")
@handle_errors("set cumulative baseline")
def set_cumulative_baseline_route(supplier_id: int):
    """Request body: {"salon_id": 3, "period": "2025-02", "cumulative_value": 120000}"""
    data = request.get_json(silent=True) or {}
    try:
        salon_id = int(data["salon_id"])
        value = float(data["cumulative_value"])
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "salon_id and a numeric cumulative_value are required"}), 400
    baseline = sales_import_service.set_cumulative_baseline(salon_id, supplier_id, data.get("period"), value)
    return jsonify(baseline.to_dict())


# -- Loyalty calculation --

@bonus_bp.post("/suppliers/<int:supplier_id>/calculate")
@require_auth
@require_permission("RUN_BONUS_CALCULATION")
@handle_errors("run bonus calculation")
def calculate_route(supplier_id: int):
    """Request body: {"period": "2025-03"}"""
    data = request.get_json(silent=True) or {}
    if not data.get("period"):
        return jsonify({"error": "period is required"}), 400
    run = bonus_service.calculate_period(supplier_id, data["period"], calculated_by=g.current_user)
    return jsonify(run.to_dict())


@bonus_bp.get("/calculations")
@require_auth
@require_permission("VIEW_BONUS")
@handle_errors("list bonus calculations")
def list_calculations_route():
    """Query parameters: supplier_id, period, year, status"""
    user = g.current_user
    supplier_id = request.args.get("supplier_id", type=int)
    salon_ids = accessible_salon_ids(user)
    if user.supplier_id is not None and supplier_id in (None, user.supplier_id):
        # Supplier users see all their calculations, incl. the unmatched aggregate
        supplier_id = user.supplier_id
        salon_ids = None
    elif supplier_id is not None:
        require_supplier_access(user, supplier_id)

    calculations = bonus_service.list_calculations(
        supplier_id=supplier_id,
        period=request.args.get("period"),
        year=request.args.get("year", type=int),
        status=request.args.get("status"),
        salon_ids=salon_ids,
    )
    return jsonify({"items": [c.to_dict() for c in calculations], "count": len(calculations)})


@bonus_bp.put("/calculations/<int:calculation_id>/status")
@require_auth
@require_permission("RUN_BONUS_CALCULATION")
@handle_errors("change bonus status")
def update_status_route(calculation_id: int):
    """Request body: {"status": "approved"}"""
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return jsonify({"error": "status is required"}), 400
    calc = bonus_service.update_status(calculation_id, data["status"])
    return jsonify(calc.to_dict())


# -- Growth bonus --

@bonus_bp.get("/suppliers/<int:supplier_id>/growth")
@require_auth
@require_permission("VIEW_BONUS")
@handle_errors("build growth overview")
def growth_overview_route(supplier_id: int):
    """Query parameters: year (default current), district_id"""
    require_supplier_access(g.current_user, supplier_id)
    user = g.current_user
    scope = None if user.supplier_id == supplier_id else accessible_salon_ids(user)
    rows = bonus_service.growth_overview(
        supplier_id,
        request.args.get("year", utcnow().year, type=int),
        district_id=request.args.get("district_id", type=int),
        salon_ids=scope,
    )
    return jsonify({"items": rows, "count": len(rows)})


@bonus_bp.get("/suppliers/<int:supplier_id>/growth/<int:salon_id>")
@require_auth
@require_permission("VIEW_BONUS")
@handle_errors("calculate growth bonus")
def growth_for_salon_route(supplier_id: int, salon_id: int):
    require_supplier_access(g.current_user, supplier_id)
    require_salon_access(g.current_user, salon_id)
    year = request.args.get("year", utcnow().year, type=int)
    return jsonify(bonus_service.growth_for_salon(salon_id, supplier_id, year))


@bonus_bp.post("/suppliers/<int:supplier_id>/growth/<int:salon_id>/report")
@require_auth
@require_permission("SEND_BONUS_REPORTS")
@handle_errors("send growth report")
def send_growth_report_route(supplier_id: int, salon_id: int):
    """Request body: {"year": 2025, "recipient_email": "eier@salong.no"}"""
    require_salon_access(g.current_user, salon_id)
    data = request.get_json(silent=True) or {}
    year = int(data.get("year") or utcnow().year)
    result = bonus_service.send_growth_report(salon_id, supplier_id, year, data.get("recipient_email"))
    return jsonify(result)


# -- Baseline overrides --

@bonus_bp.get("/suppliers/<int:supplier_id>/overrides")
@require_auth
@require_permission("VIEW_BONUS")
@handle_errors("list baseline overrides")
def list_overrides_route(supplier_id: int):
    require_supplier_access(g.current_user, supplier_id)
    rows = bonus_service.list_baseline_overrides(supplier_id, request.args.get("year", type=int))
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@bonus_bp.put("/suppliers/<int:supplier_id>/overrides")
@require_auth
@require_permission("RUN_BONUS_CALCULATION")
@handle_errors("set baseline override")
def set_override_route(supplier_id: int):
    """Request body: {"salon_id": 3, "year": 2025, "override_turnover": 250000, "note": "..."}"""
    data = request.get_json(silent=True) or {}
    try:
        salon_id = int(data["salon_id"])
        year = int(data["year"])
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "salon_id and year are required"}), 400
    override = bonus_service.set_baseline_override(
        salon_id,
        supplier_id,
        year,
        data.get("override_turnover"),
        note=data.get("note"),
        created_by=g.current_user,
    )
    return jsonify(override.to_dict())


@bonus_bp.delete("/overrides/<int:override_id>")
@require_auth
@require_permission("RUN_BONUS_CALCULATION")
@handle_errors("delete baseline override")
def delete_override_route(override_id: int):
    bonus_service.delete_baseline_override(override_id)
    return jsonify({"deleted": True})
