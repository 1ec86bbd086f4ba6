# Overview: Service-layer operations for supplier bonus rules; encapsulates business logic and database work.

from __future__ import annotations

from ..calculator.loyalty import PRODUCT_TYPES, RuleTerms
from ..extensions import db
from ..models import BonusRule, SupplierBrand
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_choice,
    require_non_negative,
    require_percentage,
    validate_payload,
)
from .supplier_service import get_supplier


RULE_POLICY = ModelValidationPolicy(
    writable_fields={
        "brand_id", "product_type",
        "loyalty_pct", "return_pct",
        "chemical_loyalty_pct", "chemical_return_pct",
        "resale_loyalty_pct", "resale_return_pct",
        "valid_from", "valid_to", "priority",
        "min_turnover", "max_turnover", "description", "is_active",
    },
    required_on_create={"valid_from"},
)

PERCENT_FIELDS = (
    "loyalty_pct",
    "return_pct",
    "chemical_loyalty_pct",
    "chemical_return_pct",
    "resale_loyalty_pct",
    "resale_return_pct",
)


def _enforce_rules(supplier_id: int, patch: dict, existing: BonusRule | None = None) -> None:
    require_choice("product_type", patch.get("product_type"), PRODUCT_TYPES)
    require_percentage(patch, *PERCENT_FIELDS)
    require_non_negative(patch, "min_turnover", "max_turnover")

    brand_id = patch.get("brand_id")
    if brand_id is not None:
        brand = db.session.get(SupplierBrand, brand_id)
        if brand is None or brand.supplier_id != supplier_id:
            raise ValidationError("Brand does not belong to this supplier")

    valid_from = patch.get("valid_from", existing.valid_from if existing else None)
    valid_to = patch.get("valid_to", existing.valid_to if existing else None)
    if valid_from and valid_to and valid_to < valid_from:
        raise ValidationError("valid_to must be on or after valid_from")

    min_turnover = patch.get("min_turnover", existing.min_turnover if existing else None)
    max_turnover = patch.get("max_turnover", existing.max_turnover if existing else None)
    if min_turnover is not None and max_turnover is not None and max_turnover < min_turnover:
        raise ValidationError("max_turnover must be >= min_turnover")


def create_rule(supplier_id: int, payload: dict) -> BonusRule:
    get_supplier(supplier_id)
    patch = validate_payload(model=BonusRule, payload=payload, policy=RULE_POLICY, partial=False)
    _enforce_rules(supplier_id, patch)
    rule = BonusRule(supplier_id=supplier_id, **patch)
    db.session.add(rule)
    db.session.commit()
    return rule


def update_rule(rule_id: int, payload: dict) -> BonusRule:
    rule = get_rule(rule_id)
    patch = validate_payload(model=BonusRule, payload=payload, policy=RULE_POLICY, partial=True)
    _enforce_rules(rule.supplier_id, patch, existing=rule)
    for key, value in patch.items():
        setattr(rule, key, value)
    db.session.commit()
    return rule


def get_rule(rule_id: int) -> BonusRule:
    rule = db.session.get(BonusRule, rule_id)
    if not rule:
        raise NotFoundError("Bonus rule not found")
    return rule


def delete_rule(rule_id: int) -> None:
    db.session.delete(get_rule(rule_id))
    db.session.commit()


def list_rules(supplier_id: int, *, active_only: bool = False) -> list[BonusRule]:
    query = db.session.query(BonusRule).filter(BonusRule.supplier_id == supplier_id)
    if active_only:
        query = query.filter(BonusRule.is_active.is_(True))
    return query.order_by(BonusRule.priority.desc(), BonusRule.valid_from.desc()).all()


def load_rule_terms(supplier_id: int) -> list[RuleTerms]:
    """Active rules in the calculator's form."""
    return [RuleTerms.from_model(rule) for rule in list_rules(supplier_id, active_only=True)]
