# Overview: Service-layer operations for bonus calculation and reporting; encapsulates business logic and database work.

"""
Bonus Calculation Service

TWO BONUSES:
- Loyalty / return commission: per period, from normalised sales rows and
  supplier rules. Materialized in BonusCalculation.
- Growth bonus (vekstbonus): per year, from year-to-date turnover compared
  with the prior year. Computed on read; never stored.

LIFECYCLE: pending -> calculated -> approved -> paid. Approved and paid
rows are frozen and survive re-runs untouched.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from ..calculator.cumulative import running_totals
from ..calculator.growth import calculate_growth_bonus, growth_inputs_from_periods
from ..calculator.loyalty import SaleLine, calculate_loyalty
from ..calculator.money import round_half_up
from ..extensions import db
from ..integrations import functions
from ..models import BaselineOverride, BonusCalculation, ImportedSale, Salon, User
from ..validation import NotFoundError, ValidationError
from salonportal.time_utils import parse_period, utcnow
from .bonus_rule_service import load_rule_terms
from .sales_import_service import recompute_deltas
from .supplier_service import get_supplier


logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_CALCULATED = "calculated"
STATUS_APPROVED = "approved"
STATUS_PAID = "paid"
STATUS_UNMATCHED = "unmatched"

FROZEN_STATUSES = (STATUS_APPROVED, STATUS_PAID)

NEXT_STATUS = {
    STATUS_PENDING: STATUS_CALCULATED,
    STATUS_CALCULATED: STATUS_APPROVED,
    STATUS_APPROVED: STATUS_PAID,
}


@dataclass
class CalculationRun:
    supplier_id: int
    period: str
    calculations: list[BonusCalculation] = field(default_factory=list)
    frozen: list[int] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "period": self.period,
            "calculations": [c.to_dict() for c in self.calculations],
            "skipped_frozen_salon_ids": self.frozen,
            "missing_rules": self.warnings,
        }


def _lines(sales: list[ImportedSale]) -> list[SaleLine]:
    return [
        SaleLine(
            supplier_id=sale.supplier_id,
            brand=sale.brand,
            product_group=sale.product_group,
            turnover=sale.delta_value,
            brand_id=sale.brand_id,
            reported_value=sale.reported_value,
        )
        for sale in sales
    ]


def calculate_period(supplier_id: int, period: str, *, calculated_by: User | None = None) -> CalculationRun:
    """
    (Re)compute loyalty and return commission for every salon that has
    sales with the supplier in `period`.
    """
    get_supplier(supplier_id)
    parse_period(period)
    recompute_deltas(supplier_id, period)

    sales = db.session.query(ImportedSale).filter_by(supplier_id=supplier_id, period=period).all()
    if not sales:
        raise ValidationError(f"No imported sales for {period}")

    rules = load_rule_terms(supplier_id)
    by_salon: dict[int | None, list[ImportedSale]] = defaultdict(list)
    for sale in sales:
        by_salon[sale.salon_id].append(sale)

    existing = {
        calc.salon_id: calc
        for calc in db.session.query(BonusCalculation).filter_by(supplier_id=supplier_id, period=period).all()
    }

    run = CalculationRun(supplier_id=supplier_id, period=period)
    missing: dict[tuple, float] = defaultdict(float)
    now = utcnow()

    for salon_id, salon_sales in by_salon.items():
        calc = existing.get(salon_id)
        if calc is not None and calc.status in FROZEN_STATUSES:
            run.frozen.append(salon_id)
            continue

        if salon_id is None:
            # Unmatched rows are totalled for follow-up; no rule is applied
            total = round_half_up(sum(sale.delta_value for sale in salon_sales))
            values = {
                "total_turnover": total,
                "loyalty_bonus_amount": 0.0,
                "return_commission_amount": 0.0,
                "total_bonus": 0.0,
                "applied_rule_ids": [],
                "calculation_details": {
                    "rows": len(salon_sales),
                    "customers": sorted({s.customer_number or s.org_number or "" for s in salon_sales}),
                },
                "status": STATUS_UNMATCHED,
            }
        else:
            result = calculate_loyalty(_lines(salon_sales), rules, period)
            for warning in result.missing_rules:
                missing[(warning["brand"], warning["product_group"])] += warning["turnover"]
            values = {
                "total_turnover": result.total_turnover,
                "loyalty_bonus_amount": result.loyalty_bonus,
                "return_commission_amount": result.return_commission,
                "total_bonus": result.total_bonus,
                "applied_rule_ids": result.applied_rule_ids,
                "calculation_details": {"lines": result.details, "missing_rules": result.missing_rules},
                "status": STATUS_CALCULATED,
            }

        if calc is None:
            calc = BonusCalculation(salon_id=salon_id, supplier_id=supplier_id, period=period)
            db.session.add(calc)
        for key, value in values.items():
            setattr(calc, key, value)
        calc.calculated_at = now
        calc.calculated_by_user_id = calculated_by.id if calculated_by else None
        run.calculations.append(calc)

    # Salons whose sales disappeared since the last run (e.g. re-matched rows)
    for salon_id, calc in existing.items():
        if salon_id not in by_salon and calc.status not in FROZEN_STATUSES:
            db.session.delete(calc)

    db.session.commit()

    run.warnings = [
        {"brand": brand, "product_group": group, "turnover": round_half_up(turnover)}
        for (brand, group), turnover in sorted(missing.items())
    ]
    logger.info(
        "Bonus calculation for supplier %s %s: %d rows written, %d frozen, %d missing-rule warnings",
        supplier_id, period, len(run.calculations), len(run.frozen), len(run.warnings),
    )
    return run


def get_calculation(calculation_id: int) -> BonusCalculation:
    calc = db.session.get(BonusCalculation, calculation_id)
    if not calc:
        raise NotFoundError("Bonus calculation not found")
    return calc


def update_status(calculation_id: int, status: str) -> BonusCalculation:
    """Move a calculation one step forward in its lifecycle."""
    calc = get_calculation(calculation_id)
    if calc.status == STATUS_UNMATCHED:
        raise ValidationError("Unmatched sales must be matched to a salon before approval")
    if NEXT_STATUS.get(calc.status) != status:
        raise ValidationError(f"Cannot change status from {calc.status} to {status}")
    calc.status = status
    db.session.commit()
    logger.info("Bonus calculation %s is now %s", calc.id, status)
    return calc


def list_calculations(
    *,
    supplier_id: int | None = None,
    period: str | None = None,
    year: int | None = None,
    status: str | None = None,
    salon_ids: set[int] | None = None,
) -> list[BonusCalculation]:
    query = db.session.query(BonusCalculation)
    if salon_ids is not None:
        if not salon_ids:
            return []
        query = query.filter(BonusCalculation.salon_id.in_(salon_ids))
    if supplier_id is not None:
        query = query.filter(BonusCalculation.supplier_id == supplier_id)
    if period is not None:
        query = query.filter(BonusCalculation.period == period)
    if year is not None:
        query = query.filter(BonusCalculation.period.like(f"{year:04d}-%"))
    if status:
        query = query.filter(BonusCalculation.status == status)
    return query.order_by(BonusCalculation.period.desc(), BonusCalculation.salon_id.asc()).all()


# -- Growth bonus --

def _monthly_ytd(supplier, salon_id: int, year: int) -> dict[int, float]:
    """Year-to-date turnover per reported month for one salon."""
    sales = (
        db.session.query(ImportedSale)
        .filter(
            ImportedSale.supplier_id == supplier.id,
            ImportedSale.salon_id == salon_id,
            ImportedSale.period.like(f"{year:04d}-%"),
        )
        .all()
    )
    monthly: dict[int, float] = defaultdict(float)
    for sale in sales:
        _, month = parse_period(sale.period)
        if supplier.cumulative_reporting:
            monthly[month] += sale.reported_value
        else:
            monthly[month] += sale.delta_value

    if supplier.cumulative_reporting:
        return dict(monthly)
    return running_totals(dict(monthly))


def get_baseline_override(salon_id: int, supplier_id: int, year: int) -> BaselineOverride | None:
    return db.session.query(BaselineOverride).filter_by(
        salon_id=salon_id, supplier_id=supplier_id, year=year
    ).first()


def growth_for_salon(salon_id: int, supplier_id: int, year: int) -> dict:
    supplier = get_supplier(supplier_id)
    salon = db.session.get(Salon, salon_id)
    if salon is None:
        raise NotFoundError("Salon not found")

    current_year = _monthly_ytd(supplier, salon_id, year)
    previous_year = _monthly_ytd(supplier, salon_id, year - 1)
    current, prev_same, prev_total = growth_inputs_from_periods(current_year, previous_year)

    override = get_baseline_override(salon_id, supplier_id, year)
    result = calculate_growth_bonus(
        current,
        prev_same,
        prev_total,
        override_turnover=override.override_turnover if override else None,
    )

    data = result.to_dict()
    data.update({
        "salon_id": salon_id,
        "salon_name": salon.name,
        "supplier_id": supplier_id,
        "year": year,
        "latest_month": max(current_year) if current_year else None,
    })
    return data


def growth_overview(
    supplier_id: int,
    year: int,
    *,
    district_id: int | None = None,
    salon_ids: set[int] | None = None,
) -> list[dict]:
    """
    Growth result per salon with sales for the supplier in `year` or the
    year before, plus the year's summed loyalty bonus.

    total_bonus = growth bonus + sum of loyalty bonus amounts.
    """
    get_supplier(supplier_id)
    query = (
        db.session.query(ImportedSale.salon_id)
        .filter(
            ImportedSale.supplier_id == supplier_id,
            ImportedSale.salon_id.isnot(None),
            db.or_(
                ImportedSale.period.like(f"{year:04d}-%"),
                ImportedSale.period.like(f"{year - 1:04d}-%"),
            ),
        )
        .distinct()
    )
    candidate_ids = {row[0] for row in query.all()}
    if salon_ids is not None:
        candidate_ids &= set(salon_ids)
    if district_id is not None:
        in_district = {
            row[0] for row in db.session.query(Salon.id).filter(Salon.district_id == district_id).all()
        }
        candidate_ids &= in_district

    loyalty_by_salon: dict[int, float] = defaultdict(float)
    for calc in list_calculations(supplier_id=supplier_id, year=year):
        if calc.salon_id is not None:
            loyalty_by_salon[calc.salon_id] += calc.loyalty_bonus_amount

    overview = []
    for salon_id in candidate_ids:
        growth = growth_for_salon(salon_id, supplier_id, year)
        loyalty = round_half_up(loyalty_by_salon.get(salon_id, 0.0))
        growth["loyalty_bonus"] = loyalty
        growth["total_bonus"] = round_half_up(growth["bonus"] + loyalty)
        overview.append(growth)

    overview.sort(key=lambda row: (row["salon_name"] or "").lower())
    return overview


def send_growth_report(salon_id: int, supplier_id: int, year: int, recipient_email: str) -> dict:
    """Email the salon's growth numbers through the hosted report function."""
    if not recipient_email or "@" not in recipient_email:
        raise ValidationError("A valid recipient email is required")

    growth = growth_for_salon(salon_id, supplier_id, year)
    supplier = get_supplier(supplier_id)
    response = functions.invoke(functions.SEND_GROWTH_BONUS_REPORT, {
        "recipientEmail": recipient_email,
        "salonName": growth["salon_name"],
        "supplierName": supplier.name,
        "year": year,
        "currentTurnover": growth["current_turnover"],
        "previousTurnover": growth["previous_same_period"],
        "previousFullYear": growth["previous_full_year"],
        "growthPercent": growth["growth_percent"],
        "tier": growth["tier"],
        "bonus": growth["bonus"],
        "comparison": growth["comparison"],
    })
    logger.info("Growth report for salon %s / supplier %s %s sent to %s", salon_id, supplier_id, year, recipient_email)
    return {"growth": growth, "function_response": response}


# -- Baseline overrides --

def set_baseline_override(
    salon_id: int,
    supplier_id: int,
    year: int,
    override_turnover: float,
    *,
    note: str | None = None,
    created_by: User | None = None,
) -> BaselineOverride:
    get_supplier(supplier_id)
    if db.session.get(Salon, salon_id) is None:
        raise NotFoundError("Salon not found")
    try:
        value = float(override_turnover)
    except (TypeError, ValueError):
        raise ValidationError("override_turnover must be a number")
    if value < 0:
        raise ValidationError("override_turnover must be >= 0")

    override = get_baseline_override(salon_id, supplier_id, year)
    if override is None:
        override = BaselineOverride(
            salon_id=salon_id,
            supplier_id=supplier_id,
            year=int(year),
            created_by_user_id=created_by.id if created_by else None,
        )
        db.session.add(override)
    override.override_turnover = value
    override.note = note
    db.session.commit()
    return override


def list_baseline_overrides(supplier_id: int, year: int | None = None) -> list[BaselineOverride]:
    query = db.session.query(BaselineOverride).filter_by(supplier_id=supplier_id)
    if year is not None:
        query = query.filter(BaselineOverride.year == year)
    return query.order_by(BaselineOverride.year.desc(), BaselineOverride.salon_id.asc()).all()


def delete_baseline_override(override_id: int) -> None:
    override = db.session.get(BaselineOverride, override_id)
    if not override:
        raise NotFoundError("Baseline override not found")
    db.session.delete(override)
    db.session.commit()
