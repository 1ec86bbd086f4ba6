# ==============================================================================
# salonportal/calculator/loyalty.py
# ------------------------------------------------------------------------------
# Loyalty bonus and return commission per supplier rule. Pure functions; the
# bonus service loads rules and sales rows and persists the result.
# ==============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from salonportal.time_utils import period_start
from .money import round_half_up


logger = logging.getLogger(__name__)

PRODUCT_TYPE_CHEMICAL = "kjemi"
PRODUCT_TYPE_RESALE = "produkt"
PRODUCT_TYPE_BOTH = "begge"
PRODUCT_TYPES = (PRODUCT_TYPE_CHEMICAL, PRODUCT_TYPE_RESALE, PRODUCT_TYPE_BOTH)


@dataclass(frozen=True)
class RuleTerms:
    """Calculator view of a BonusRule."""
    id: int
    supplier_id: int
    valid_from: date
    brand_id: int | None = None
    product_type: str = PRODUCT_TYPE_BOTH
    loyalty_pct: float = 0.0
    return_pct: float = 0.0
    chemical_loyalty_pct: float | None = None
    chemical_return_pct: float | None = None
    resale_loyalty_pct: float | None = None
    resale_return_pct: float | None = None
    valid_to: date | None = None
    priority: int = 0
    min_turnover: float | None = None
    max_turnover: float | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, rule) -> "RuleTerms":
        return cls(
            id=rule.id,
            supplier_id=rule.supplier_id,
            valid_from=rule.valid_from,
            brand_id=rule.brand_id,
            product_type=rule.product_type,
            loyalty_pct=rule.loyalty_pct or 0.0,
            return_pct=rule.return_pct or 0.0,
            chemical_loyalty_pct=rule.chemical_loyalty_pct,
            chemical_return_pct=rule.chemical_return_pct,
            resale_loyalty_pct=rule.resale_loyalty_pct,
            resale_return_pct=rule.resale_return_pct,
            valid_to=rule.valid_to,
            priority=rule.priority or 0,
            min_turnover=rule.min_turnover,
            max_turnover=rule.max_turnover,
            is_active=bool(rule.is_active),
        )

    def rates_for(self, product_group: str) -> tuple[float, float]:
        """(loyalty %, return %) for a row of the given product group."""
        if self.product_type == PRODUCT_TYPE_BOTH:
            if product_group == PRODUCT_TYPE_CHEMICAL and self.chemical_loyalty_pct is not None:
                return self.chemical_loyalty_pct, self.chemical_return_pct or 0.0
            if product_group == PRODUCT_TYPE_RESALE and self.resale_loyalty_pct is not None:
                return self.resale_loyalty_pct, self.resale_return_pct or 0.0
        return self.loyalty_pct, self.return_pct


@dataclass
class SaleLine:
    """One normalised sales row: `turnover` is the period amount (delta)."""
    supplier_id: int
    brand: str | None
    product_group: str
    turnover: float
    brand_id: int | None = None
    reported_value: float | None = None


@dataclass
class LoyaltyResult:
    total_turnover: float = 0.0
    loyalty_bonus: float = 0.0
    return_commission: float = 0.0
    applied_rule_ids: list[int] = field(default_factory=list)
    details: list[dict] = field(default_factory=list)
    missing_rules: list[dict] = field(default_factory=list)

    @property
    def total_bonus(self) -> float:
        return round_half_up(self.loyalty_bonus + self.return_commission)


def rule_matches(rule: RuleTerms, line: SaleLine, on_date: date, supplier_total: float) -> bool:
    if not rule.is_active or rule.supplier_id != line.supplier_id:
        return False
    if rule.brand_id is not None and rule.brand_id != line.brand_id:
        return False
    if rule.product_type != PRODUCT_TYPE_BOTH and rule.product_type != line.product_group:
        return False
    if rule.valid_from > on_date:
        return False
    if rule.valid_to is not None and rule.valid_to < on_date:
        return False
    if rule.min_turnover is not None and supplier_total < rule.min_turnover:
        return False
    if rule.max_turnover is not None and supplier_total > rule.max_turnover:
        return False
    return True


def _rule_rank(rule: RuleTerms) -> tuple:
    # Highest priority, then brand-specific, then product-type specific, then newest window
    return (
        rule.priority,
        rule.brand_id is not None,
        rule.product_type != PRODUCT_TYPE_BOTH,
        rule.valid_from,
    )


def select_rule(line: SaleLine, rules: list[RuleTerms], period: str, supplier_total: float = 0.0) -> RuleTerms | None:
    """
    Pick the rule that applies to a row.

    The validity window must contain the first day of `period`; turnover
    bounds are checked against the salon's total with the supplier for the
    period, so volume tiers switch for the whole salon at once.
    """
    on_date = period_start(period)
    candidates = [rule for rule in rules if rule_matches(rule, line, on_date, supplier_total)]
    if not candidates:
        return None
    return max(candidates, key=_rule_rank)


def calculate_loyalty(lines: list[SaleLine], rules: list[RuleTerms], period: str) -> LoyaltyResult:
    """
    Apply loyalty % and return % to every row and sum per salon.

    Rows without an applicable rule still count towards turnover and are
    reported in `missing_rules` grouped by brand.
    """
    result = LoyaltyResult()
    supplier_total = sum(line.turnover for line in lines)
    applied: set[int] = set()
    missing: dict[tuple[str, str], float] = {}

    loyalty_sum = 0.0
    return_sum = 0.0

    for line in lines:
        rule = select_rule(line, rules, period, supplier_total)
        if rule is None:
            key = (line.brand or "", line.product_group)
            missing[key] = missing.get(key, 0.0) + line.turnover
            loyalty_amount = 0.0
            return_amount = 0.0
            loyalty_pct = return_pct = None
        else:
            loyalty_pct, return_pct = rule.rates_for(line.product_group)
            loyalty_amount = line.turnover * loyalty_pct / 100
            return_amount = line.turnover * return_pct / 100
            applied.add(rule.id)

        loyalty_sum += loyalty_amount
        return_sum += return_amount

        result.details.append({
            "brand": line.brand,
            "product_group": line.product_group,
            "turnover": round_half_up(line.turnover),
            "reported_value": line.reported_value,
            "rule_id": rule.id if rule else None,
            "loyalty_pct": loyalty_pct,
            "return_pct": return_pct,
            "loyalty": round_half_up(loyalty_amount),
            "return": round_half_up(return_amount),
        })

    result.total_turnover = round_half_up(supplier_total)
    result.loyalty_bonus = round_half_up(loyalty_sum)
    result.return_commission = round_half_up(return_sum)
    result.applied_rule_ids = sorted(applied)
    result.missing_rules = [
        {"brand": brand, "product_group": group, "turnover": round_half_up(turnover)}
        for (brand, group), turnover in sorted(missing.items())
    ]

    if result.missing_rules:
        logger.warning(
            "No bonus rule for %d brand/group combination(s) in %s: %s",
            len(result.missing_rules),
            period,
            ", ".join(f"{m['brand'] or '?'}/{m['product_group']}" for m in result.missing_rules),
        )

    return result
