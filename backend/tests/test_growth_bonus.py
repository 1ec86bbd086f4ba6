"""
Growth bonus (vekstbonus) tests.

Verifies:
- The three-way tier rule on same-period growth
- New customers are routed into the top tier
- Full-year fallback when no comparable month exists
- Manual baseline overrides apply before branching
- Year-to-date inputs are picked from the latest reported month
- The service reads turnover from imported sales
"""

import pytest

from salonportal.calculator.growth import (
    COMPARISON_FULL_YEAR,
    COMPARISON_NEW_CUSTOMER,
    COMPARISON_SAME_PERIOD,
    TIER_LOW,
    TIER_TOP,
    calculate_growth_bonus,
    growth_inputs_from_periods,
)
from salonportal.models import ImportedSale, SalesImport
from salonportal.services import bonus_service


# =============================================================================
# TIER RULE
# =============================================================================


class TestTierRule:
    """Same-period comparison against last year."""

    def test_flat_turnover_gives_no_bonus(self):
        result = calculate_growth_bonus(100000, 100000)
        assert result.growth_percent == 0
        assert result.bonus == 0
        assert result.tier is None

    def test_growth_below_five_percent_gives_low_tier(self):
        result = calculate_growth_bonus(104000, 100000)
        assert result.growth_percent == 4.0
        assert result.bonus == 2600
        assert result.tier == TIER_LOW

    def test_growth_above_five_percent_gives_top_tier(self):
        result = calculate_growth_bonus(106000, 100000)
        assert result.growth_percent == 6.0
        assert result.bonus == 5900
        assert result.tier == TIER_TOP

    def test_exactly_five_percent_is_top_tier(self):
        result = calculate_growth_bonus(105000, 100000)
        assert result.tier == TIER_TOP
        assert result.bonus == pytest.approx(105000 * 0.05 + 5000 * 0.10)

    def test_new_customer_is_routed_to_top_tier(self):
        result = calculate_growth_bonus(50000, 0)
        assert result.is_new_customer is True
        assert result.comparison == COMPARISON_NEW_CUSTOMER
        assert result.bonus == 7500
        assert result.tier == TIER_TOP

    def test_decline_gives_no_bonus(self):
        result = calculate_growth_bonus(90000, 100000)
        assert result.growth_percent == -10.0
        assert result.bonus == 0
        assert result.tier is None

    @pytest.mark.parametrize("current", [0, -500])
    def test_no_current_turnover_gives_no_bonus(self, current):
        result = calculate_growth_bonus(current, 0)
        assert result.bonus == 0
        assert result.tier is None

    def test_missing_values_do_not_raise(self):
        result = calculate_growth_bonus(None, None, None)
        assert result.bonus == 0
        assert result.comparison == COMPARISON_NEW_CUSTOMER


# =============================================================================
# FALLBACK AND OVERRIDE
# =============================================================================


class TestFullYearFallback:
    """Prior full-year total known, no comparable month."""

    def test_fallback_uses_full_year_total(self):
        result = calculate_growth_bonus(110000, 0, 100000)
        assert result.comparison == COMPARISON_FULL_YEAR
        assert result.growth_percent == 10.0
        assert result.tier == TIER_TOP
        assert result.bonus == pytest.approx(110000 * 0.05 + 10000 * 0.10)

    def test_fallback_low_tier(self):
        result = calculate_growth_bonus(102000, 0, 100000)
        assert result.tier == TIER_LOW
        assert result.bonus == 2550

    def test_same_period_wins_over_full_year(self):
        result = calculate_growth_bonus(50000, 40000, 200000)
        assert result.comparison == COMPARISON_SAME_PERIOD
        assert result.growth_percent == 25.0

    def test_progress_and_remaining_amount(self):
        result = calculate_growth_bonus(50000, 40000, 200000)
        assert result.progress_vs_full_year == 25.0
        assert result.amount_to_reach_last_year == 150000


class TestOverride:
    """Manual baseline replaces both prior-year values before branching."""

    def test_override_replaces_prior_year(self):
        result = calculate_growth_bonus(106000, 50000, 300000, override_turnover=100000)
        assert result.override_applied is True
        assert result.previous_same_period == 100000
        assert result.previous_full_year == 100000
        assert result.bonus == 5900

    def test_zero_override_makes_new_customer(self):
        result = calculate_growth_bonus(50000, 100000, 100000, override_turnover=0)
        assert result.is_new_customer is True
        assert result.bonus == 7500


class TestGrowthInputs:

    def test_latest_month_picks_comparison(self):
        current = {1: 10000, 2: 25000, 3: 40000}
        previous = {1: 9000, 3: 35000, 12: 150000}
        assert growth_inputs_from_periods(current, previous) == (40000, 35000, 150000)

    def test_missing_prior_month_returns_zero(self):
        assert growth_inputs_from_periods({5: 1000}, {12: 9000}) == (1000, 0, 9000)

    def test_no_current_data(self):
        assert growth_inputs_from_periods({}, {12: 9000}) == (0, 0, 9000)


# =============================================================================
# SERVICE
# =============================================================================


def _add_sales(db_session, supplier, salon, values_by_period):
    for period, value in values_by_period.items():
        sales_import = SalesImport(supplier_id=supplier.id, period=period, row_count=1, matched_count=1)
        db_session.add(sales_import)
        db_session.flush()
        db_session.add(ImportedSale(
            import_id=sales_import.id,
            supplier_id=supplier.id,
            period=period,
            org_number=salon.org_number,
            brand="Wella",
            product_group="produkt",
            reported_value=value,
            delta_value=value,
            salon_id=salon.id,
            match_status="matched",
        ))
    db_session.commit()


class TestGrowthService:

    def test_per_period_supplier_sums_months(self, db_session, supplier, salon_a):
        _add_sales(db_session, supplier, salon_a, {
            "2024-01": 50000, "2024-02": 50000, "2024-12": 100000,
            "2025-01": 53000, "2025-02": 53000,
        })
        growth = bonus_service.growth_for_salon(salon_a.id, supplier.id, 2025)
        assert growth["current_turnover"] == 106000
        assert growth["previous_same_period"] == 100000
        assert growth["previous_full_year"] == 200000
        assert growth["bonus"] == 5900
        assert growth["latest_month"] == 2

    def test_cumulative_supplier_uses_reported_value(self, db_session, cumulative_supplier, salon_a):
        _add_sales(db_session, cumulative_supplier, salon_a, {
            "2024-03": 100000, "2025-01": 30000, "2025-03": 104000,
        })
        growth = bonus_service.growth_for_salon(salon_a.id, cumulative_supplier.id, 2025)
        assert growth["current_turnover"] == 104000
        assert growth["bonus"] == 2600

    def test_override_is_used(self, db_session, supplier, salon_a, admin_user):
        _add_sales(db_session, supplier, salon_a, {"2025-01": 106000})
        bonus_service.set_baseline_override(salon_a.id, supplier.id, 2025, 100000, created_by=admin_user)
        growth = bonus_service.growth_for_salon(salon_a.id, supplier.id, 2025)
        assert growth["override_applied"] is True
        assert growth["bonus"] == 5900

    def test_negative_override_rejected(self, db_session, supplier, salon_a):
        with pytest.raises(ValueError):
            bonus_service.set_baseline_override(salon_a.id, supplier.id, 2025, -1)

    def test_overview_adds_loyalty_bonus(self, db_session, supplier, salon_a):
        from salonportal.models import BonusCalculation
        _add_sales(db_session, supplier, salon_a, {"2025-01": 50000})
        db_session.add(BonusCalculation(
            salon_id=salon_a.id, supplier_id=supplier.id, period="2025-01",
            total_turnover=50000, loyalty_bonus_amount=1000, total_bonus=1000, status="calculated",
        ))
        db_session.commit()

        rows = bonus_service.growth_overview(supplier.id, 2025)
        assert len(rows) == 1
        assert rows[0]["bonus"] == 7500
        assert rows[0]["loyalty_bonus"] == 1000
        assert rows[0]["total_bonus"] == 8500

    def test_send_report_invokes_function(self, db_session, supplier, salon_a, function_calls):
        _add_sales(db_session, supplier, salon_a, {"2025-01": 50000})
        bonus_service.send_growth_report(salon_a.id, supplier.id, 2025, "eier@salong.no")
        body = function_calls.bodies("send-growth-bonus-report")[0]
        assert body["recipientEmail"] == "eier@salong.no"
        assert body["bonus"] == 7500
        assert body["tier"] == TIER_TOP
