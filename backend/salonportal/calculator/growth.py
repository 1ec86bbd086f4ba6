# ==============================================================================
# salonportal/calculator/growth.py
# ------------------------------------------------------------------------------
# Growth bonus (vekstbonus) tier rule. Pure functions over already aggregated
# year-to-date turnover; no database access.
# ==============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict

from .money import round_half_up


logger = logging.getLogger(__name__)

TOP_TIER_THRESHOLD_PCT = 5.0
TOP_TIER_BASE_RATE = 0.05
TOP_TIER_GROWTH_RATE = 0.10
LOW_TIER_RATE = 0.025

TIER_TOP = "5%+10%"
TIER_LOW = "2.5%"

COMPARISON_SAME_PERIOD = "same_period"
COMPARISON_FULL_YEAR = "full_year"
COMPARISON_NEW_CUSTOMER = "new_customer"


@dataclass
class GrowthResult:
    current_turnover: float
    previous_same_period: float
    previous_full_year: float
    comparison: str
    growth_percent: float
    bonus: float
    tier: str | None
    is_new_customer: bool
    override_applied: bool
    progress_vs_full_year: float | None
    amount_to_reach_last_year: float

    def to_dict(self) -> dict:
        return asdict(self)


def tier_bonus(growth_percent: float, current: float, previous: float, is_new_customer: bool) -> tuple[float, str | None]:
    """
    Three-way tier branch.

    Returns (bonus, tier label). `previous` is the comparison turnover
    used for the growth part of the top tier (0 for new customers).
    """
    if current <= 0:
        return 0.0, None

    if is_new_customer or growth_percent >= TOP_TIER_THRESHOLD_PCT:
        bonus = current * TOP_TIER_BASE_RATE + (current - previous) * TOP_TIER_GROWTH_RATE
        return round_half_up(bonus), TIER_TOP

    if growth_percent > 0:
        return round_half_up(current * LOW_TIER_RATE), TIER_LOW

    return 0.0, None


def calculate_growth_bonus(
    current_turnover: float,
    previous_same_period: float,
    previous_full_year: float = 0.0,
    override_turnover: float | None = None,
) -> GrowthResult:
    """
    Decide the growth tier and bonus for one salon + supplier + year.

    - current_turnover: latest cumulative year-to-date turnover
    - previous_same_period: prior-year cumulative turnover for the same month
    - previous_full_year: prior-year December cumulative turnover
    - override_turnover: manual baseline; replaces both prior-year values
      before any branching

    Missing or zero denominators never raise: they route to the
    full-year fallback or to the new-customer branch.
    """
    current = float(current_turnover or 0)
    prev_same = float(previous_same_period or 0)
    prev_total = float(previous_full_year or 0)

    override_applied = override_turnover is not None
    if override_applied:
        prev_same = prev_total = float(override_turnover)

    is_new_customer = prev_same <= 0 and prev_total <= 0
    progress = round_half_up(current * 100 / prev_total, 1) if prev_total > 0 else None

    if is_new_customer:
        comparison = COMPARISON_NEW_CUSTOMER
        growth_percent = 0.0
        bonus, tier = tier_bonus(100.0, current, 0.0, True)
    elif prev_same > 0:
        comparison = COMPARISON_SAME_PERIOD
        growth_percent = (current - prev_same) * 100 / prev_same
        bonus, tier = tier_bonus(growth_percent, current, prev_same, False)
    else:
        # Full-year total known but no comparable month: approximate
        comparison = COMPARISON_FULL_YEAR
        growth_percent = current * 100 / prev_total - 100
        bonus, tier = tier_bonus(growth_percent, current, prev_total, False)

    logger.debug(
        "Growth bonus: current=%.2f prev_same=%.2f prev_total=%.2f comparison=%s growth=%.2f%% tier=%s bonus=%.2f",
        current, prev_same, prev_total, comparison, growth_percent, tier, bonus,
    )

    return GrowthResult(
        current_turnover=current,
        previous_same_period=prev_same,
        previous_full_year=prev_total,
        comparison=comparison,
        growth_percent=round_half_up(growth_percent, 2),
        bonus=bonus,
        tier=tier,
        is_new_customer=is_new_customer,
        override_applied=override_applied,
        progress_vs_full_year=progress,
        amount_to_reach_last_year=round_half_up(max(prev_total - current, 0.0)),
    )


def growth_inputs_from_periods(current_year: dict[int, float], previous_year: dict[int, float]) -> tuple[float, float, float]:
    """
    Pick (current, previous_same_period, previous_full_year) from cumulative
    monthly totals keyed by month number.

    The latest reported month of `year` decides which prior-year month is
    comparable; December of the prior year is the full-year total.
    """
    if not current_year:
        return 0.0, 0.0, float(previous_year.get(12, 0.0))
    latest_month = max(current_year)
    return (
        float(current_year[latest_month]),
        float(previous_year.get(latest_month, 0.0)),
        float(previous_year.get(12, 0.0)),
    )
