"""
Loyalty bonus and return commission tests.

Verifies:
- Rule selection by brand, product type, validity window and priority
- Separate chemical / resale percentages on "begge" rules
- Turnover bounds are checked against the salon's total
- Period calculation persists per salon, freezes approved rows and
  aggregates unmatched rows
- Status changes only move forward
"""

from datetime import date

import pytest

from salonportal.calculator.loyalty import RuleTerms, SaleLine, calculate_loyalty, select_rule
from salonportal.models import BonusCalculation, ImportedSale, SalesImport, SupplierBrand
from salonportal.services import bonus_rule_service, bonus_service


def _rule(rule_id, **kwargs):
    kwargs.setdefault("supplier_id", 1)
    kwargs.setdefault("valid_from", date(2025, 1, 1))
    return RuleTerms(id=rule_id, **kwargs)


def _line(turnover, brand_id=None, product_group="produkt", brand="Wella"):
    return SaleLine(supplier_id=1, brand=brand, product_group=product_group, turnover=turnover, brand_id=brand_id)


# =============================================================================
# RULE SELECTION
# =============================================================================


class TestRuleSelection:

    def test_higher_priority_wins(self):
        low = _rule(1, priority=0, loyalty_pct=2)
        high = _rule(2, priority=5, loyalty_pct=3)
        assert select_rule(_line(1000), [low, high], "2025-03").id == 2

    def test_brand_specific_wins_on_equal_priority(self):
        general = _rule(1, loyalty_pct=2)
        specific = _rule(2, brand_id=7, loyalty_pct=4)
        assert select_rule(_line(1000, brand_id=7), [general, specific], "2025-03").id == 2

    def test_brand_rule_does_not_match_other_brand(self):
        specific = _rule(2, brand_id=7, loyalty_pct=4)
        assert select_rule(_line(1000, brand_id=8), [specific], "2025-03") is None

    def test_product_type_must_match(self):
        chem_only = _rule(1, product_type="kjemi", loyalty_pct=4)
        assert select_rule(_line(1000, product_group="produkt"), [chem_only], "2025-03") is None
        assert select_rule(_line(1000, product_group="kjemi"), [chem_only], "2025-03").id == 1

    def test_validity_window(self):
        old = _rule(1, valid_from=date(2024, 1, 1), valid_to=date(2024, 12, 31))
        new = _rule(2, valid_from=date(2025, 1, 1))
        assert select_rule(_line(1000), [old, new], "2024-06").id == 1
        assert select_rule(_line(1000), [old, new], "2025-06").id == 2

    def test_newest_window_breaks_remaining_tie(self):
        older = _rule(1, valid_from=date(2024, 1, 1))
        newer = _rule(2, valid_from=date(2025, 2, 1))
        assert select_rule(_line(1000), [older, newer], "2025-03").id == 2

    def test_inactive_rule_ignored(self):
        assert select_rule(_line(1000), [_rule(1, is_active=False)], "2025-03") is None

    def test_turnover_bounds_use_supplier_total(self):
        small = _rule(1, loyalty_pct=2, max_turnover=10000)
        large = _rule(2, loyalty_pct=4, min_turnover=10000)
        assert select_rule(_line(500), [small, large], "2025-03", supplier_total=5000).id == 1
        assert select_rule(_line(500), [small, large], "2025-03", supplier_total=20000).id == 2


# =============================================================================
# AMOUNTS
# =============================================================================


class TestLoyaltyAmounts:

    def test_loyalty_and_return_summed(self):
        rules = [_rule(1, loyalty_pct=5, return_pct=2)]
        result = calculate_loyalty([_line(10000), _line(5000)], rules, "2025-03")
        assert result.total_turnover == 15000
        assert result.loyalty_bonus == 750
        assert result.return_commission == 300
        assert result.total_bonus == 1050
        assert result.applied_rule_ids == [1]

    def test_chemical_and_resale_percentages(self):
        rule = _rule(1, loyalty_pct=1, chemical_loyalty_pct=6, chemical_return_pct=1, resale_loyalty_pct=3)
        result = calculate_loyalty(
            [_line(1000, product_group="kjemi"), _line(1000, product_group="produkt")],
            [rule],
            "2025-03",
        )
        assert result.loyalty_bonus == 90
        assert result.return_commission == 10

    def test_missing_rule_reported_and_counted_in_turnover(self):
        result = calculate_loyalty([_line(2000, brand="Ukjent")], [], "2025-03")
        assert result.total_turnover == 2000
        assert result.total_bonus == 0
        assert result.missing_rules == [{"brand": "Ukjent", "product_group": "produkt", "turnover": 2000}]

    def test_half_up_rounding(self):
        result = calculate_loyalty([_line(100.5)], [_rule(1, loyalty_pct=1)], "2025-03")
        assert result.loyalty_bonus == 1.01


# =============================================================================
# RULE SERVICE
# =============================================================================


class TestRuleService:

    def test_create_rule_with_brand(self, db_session, supplier):
        brand = db_session.query(SupplierBrand).filter_by(name="Wella").first()
        rule = bonus_rule_service.create_rule(supplier.id, {
            "brand_id": brand.id,
            "product_type": "kjemi",
            "loyalty_pct": 5,
            "valid_from": "2025-01-01",
        })
        assert rule.valid_from == date(2025, 1, 1)
        assert rule.brand_id == brand.id

    def test_percentage_over_100_rejected(self, db_session, supplier):
        with pytest.raises(ValueError):
            bonus_rule_service.create_rule(supplier.id, {"loyalty_pct": 150, "valid_from": "2025-01-01"})

    def test_window_must_be_ordered(self, db_session, supplier):
        with pytest.raises(ValueError):
            bonus_rule_service.create_rule(supplier.id, {
                "valid_from": "2025-06-01",
                "valid_to": "2025-01-01",
            })


# =============================================================================
# PERIOD CALCULATION
# =============================================================================


def _import(db_session, supplier, period, rows):
    sales_import = SalesImport(supplier_id=supplier.id, period=period, row_count=len(rows))
    db_session.add(sales_import)
    db_session.flush()
    for salon, value, customer in rows:
        db_session.add(ImportedSale(
            import_id=sales_import.id,
            supplier_id=supplier.id,
            period=period,
            customer_number=customer,
            brand="Wella",
            product_group="produkt",
            reported_value=value,
            delta_value=value,
            salon_id=salon.id if salon else None,
            match_status="matched" if salon else "unmatched",
        ))
    db_session.commit()


class TestCalculatePeriod:

    @pytest.fixture
    def rule(self, db_session, supplier):
        return bonus_rule_service.create_rule(supplier.id, {
            "loyalty_pct": 5,
            "return_pct": 1,
            "valid_from": "2025-01-01",
        })

    def test_calculation_per_salon(self, db_session, supplier, salon_a, salon_b, rule):
        _import(db_session, supplier, "2025-03", [(salon_a, 10000, None), (salon_b, 20000, None)])
        run = bonus_service.calculate_period(supplier.id, "2025-03")

        by_salon = {c.salon_id: c for c in run.calculations}
        assert by_salon[salon_a.id].loyalty_bonus_amount == 500
        assert by_salon[salon_a.id].return_commission_amount == 100
        assert by_salon[salon_b.id].total_bonus == 1200
        assert by_salon[salon_a.id].status == "calculated"
        assert by_salon[salon_a.id].applied_rule_ids == [rule.id]

    def test_unmatched_rows_aggregated(self, db_session, supplier, salon_a, rule):
        _import(db_session, supplier, "2025-03", [(salon_a, 10000, None), (None, 3000, "K-9"), (None, 2000, "K-9")])
        bonus_service.calculate_period(supplier.id, "2025-03")

        unmatched = db_session.query(BonusCalculation).filter(BonusCalculation.salon_id.is_(None)).one()
        assert unmatched.status == "unmatched"
        assert unmatched.total_turnover == 5000
        assert unmatched.total_bonus == 0
        assert unmatched.calculation_details["customers"] == ["K-9"]

    def test_recalculation_skips_frozen(self, db_session, supplier, salon_a, rule):
        _import(db_session, supplier, "2025-03", [(salon_a, 10000, None)])
        calc = bonus_service.calculate_period(supplier.id, "2025-03").calculations[0]
        bonus_service.update_status(calc.id, "approved")

        rule_obj = bonus_rule_service.get_rule(rule.id)
        bonus_rule_service.update_rule(rule_obj.id, {"loyalty_pct": 10})
        run = bonus_service.calculate_period(supplier.id, "2025-03")

        assert run.frozen == [salon_a.id]
        assert bonus_service.get_calculation(calc.id).loyalty_bonus_amount == 500

    def test_no_sales_rejected(self, db_session, supplier):
        with pytest.raises(ValueError):
            bonus_service.calculate_period(supplier.id, "2025-03")

    def test_missing_rules_reported(self, db_session, supplier, salon_a):
        _import(db_session, supplier, "2025-03", [(salon_a, 10000, None)])
        run = bonus_service.calculate_period(supplier.id, "2025-03")
        assert run.to_dict()["missing_rules"] == [{"brand": "Wella", "product_group": "produkt", "turnover": 10000}]


class TestStatusLifecycle:

    def test_forward_only(self, db_session, supplier, salon_a):
        calc = BonusCalculation(salon_id=salon_a.id, supplier_id=supplier.id, period="2025-03", status="calculated")
        db_session.add(calc)
        db_session.commit()

        with pytest.raises(ValueError):
            bonus_service.update_status(calc.id, "paid")
        assert bonus_service.update_status(calc.id, "approved").status == "approved"
        assert bonus_service.update_status(calc.id, "paid").status == "paid"
        with pytest.raises(ValueError):
            bonus_service.update_status(calc.id, "calculated")

    def test_unmatched_cannot_be_approved(self, db_session, supplier):
        calc = BonusCalculation(salon_id=None, supplier_id=supplier.id, period="2025-03", status="unmatched")
        db_session.add(calc)
        db_session.commit()
        with pytest.raises(ValueError):
            bonus_service.update_status(calc.id, "approved")
