# Overview: Service-layer operations for the insurance product catalogue; encapsulates business logic and database work.

"""
Insurance Product Catalogue

STRUCTURE:
- InsuranceProduct: what is sold, its type, price model and base price
- InsuranceProductTier: priced coverage levels of one product
- InsuranceCoverageDetail: coverage table cells, one per tier and coverage type
- InsuranceProductDocument: terms, product sheets etc. per product or tier

COVERAGE TABLE: a coverage type is added to every tier of the product at
once (value "-") and removed from every tier at once, so the comparison
table stays rectangular. A tier added later inherits the existing types.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import (
    InsuranceCoverageDetail,
    InsuranceProduct,
    InsuranceProductDocument,
    InsuranceProductTier,
    User,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_choice,
    require_non_negative,
    validate_payload,
)


logger = logging.getLogger(__name__)

PRODUCT_TYPES = ("salong", "yrkesskade", "cyber", "reise", "fritidsulykke", "helse")
PRICE_MODELS = ("fast", "per_arsverk", "per_person")
DOCUMENT_TYPES = ("vilkar", "produktark", "forsikringsbevis", "reisekort", "faq", "annet")

NOT_COVERED = "-"

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "product_type", "price_model", "base_price",
        "requires_employee_selection", "active", "sort_order", "icon_name",
    },
    required_on_create={"name", "product_type", "price_model", "base_price"},
)

TIER_POLICY = ModelValidationPolicy(
    writable_fields={"tier_name", "tier_description", "price", "sort_order"},
    required_on_create={"tier_name", "price"},
)

DOCUMENT_POLICY = ModelValidationPolicy(
    writable_fields={"tier_id", "document_type", "title", "file_url", "version"},
    required_on_create={"title", "file_url"},
)


# -- Products --

def _check_product(patch: dict) -> None:
    require_choice("product_type", patch.get("product_type"), PRODUCT_TYPES)
    require_choice("price_model", patch.get("price_model"), PRICE_MODELS)
    require_non_negative(patch, "base_price")


def create_product(payload: dict) -> InsuranceProduct:
    patch = validate_payload(model=InsuranceProduct, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _check_product(patch)
    if patch.get("sort_order") is None:
        patch["sort_order"] = db.session.query(InsuranceProduct).count()

    product = InsuranceProduct(**patch)
    db.session.add(product)
    db.session.commit()
    logger.info("Insurance product %s created (%s, %s)", product.id, product.product_type, product.price_model)
    return product


def update_product(product_id: int, payload: dict) -> InsuranceProduct:
    product = get_product(product_id)
    patch = validate_payload(model=InsuranceProduct, payload=payload, policy=PRODUCT_POLICY, partial=True)
    _check_product(patch)
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def set_active(product_id: int, active: bool) -> InsuranceProduct:
    product = get_product(product_id)
    product.active = bool(active)
    db.session.commit()
    logger.info("Insurance product %s %s", product.id, "activated" if product.active else "deactivated")
    return product


def get_product(product_id: int) -> InsuranceProduct:
    product = db.session.get(InsuranceProduct, product_id)
    if not product:
        raise NotFoundError("Insurance product not found")
    return product


def list_products(*, active_only: bool = False, product_type: str | None = None) -> list[InsuranceProduct]:
    query = db.session.query(InsuranceProduct)
    if active_only:
        query = query.filter(InsuranceProduct.active.is_(True))
    if product_type:
        require_choice("product_type", product_type, PRODUCT_TYPES)
        query = query.filter(InsuranceProduct.product_type == product_type)
    return query.order_by(InsuranceProduct.sort_order.asc(), InsuranceProduct.id.asc()).all()


def delete_product(product_id: int) -> None:
    db.session.delete(get_product(product_id))
    db.session.commit()


# -- Tiers --

def list_tiers(product_id: int) -> list[InsuranceProductTier]:
    get_product(product_id)
    return (
        db.session.query(InsuranceProductTier)
        .filter_by(product_id=product_id)
        .order_by(InsuranceProductTier.sort_order.asc(), InsuranceProductTier.id.asc())
        .all()
    )


def get_tier(tier_id: int) -> InsuranceProductTier:
    tier = db.session.get(InsuranceProductTier, tier_id)
    if not tier:
        raise NotFoundError("Tier not found")
    return tier


def _coverage_types(product_id: int) -> list[tuple[str, int]]:
    """(coverage_type, sort_order) already used by the product's tiers, in table order."""
    rows = (
        db.session.query(InsuranceCoverageDetail.coverage_type, db.func.min(InsuranceCoverageDetail.sort_order))
        .join(InsuranceProductTier, InsuranceProductTier.id == InsuranceCoverageDetail.tier_id)
        .filter(InsuranceProductTier.product_id == product_id)
        .group_by(InsuranceCoverageDetail.coverage_type)
        .all()
    )
    return sorted(((coverage_type, order) for coverage_type, order in rows), key=lambda row: (row[1], row[0]))


def create_tier(product_id: int, payload: dict) -> InsuranceProductTier:
    get_product(product_id)
    patch = validate_payload(model=InsuranceProductTier, payload=payload, policy=TIER_POLICY, partial=False)
    require_non_negative(patch, "price")
    if patch.get("sort_order") is None:
        patch["sort_order"] = db.session.query(InsuranceProductTier).filter_by(product_id=product_id).count()

    existing_types = _coverage_types(product_id)
    tier = InsuranceProductTier(product_id=product_id, **patch)
    db.session.add(tier)
    db.session.flush()
    for coverage_type, sort_order in existing_types:
        db.session.add(InsuranceCoverageDetail(
            tier_id=tier.id,
            coverage_type=coverage_type,
            coverage_value=NOT_COVERED,
            sort_order=sort_order,
        ))
    db.session.commit()
    return tier


def update_tier(tier_id: int, payload: dict) -> InsuranceProductTier:
    """Inline price edits from the coverage table land here too."""
    tier = get_tier(tier_id)
    patch = validate_payload(model=InsuranceProductTier, payload=payload, policy=TIER_POLICY, partial=True)
    require_non_negative(patch, "price")
    for key, value in patch.items():
        setattr(tier, key, value)
    db.session.commit()
    return tier


def delete_tier(tier_id: int) -> None:
    tier = get_tier(tier_id)
    for document in db.session.query(InsuranceProductDocument).filter_by(tier_id=tier.id).all():
        db.session.delete(document)
    db.session.delete(tier)
    db.session.commit()


# -- Coverage table --

def coverage_table(product_id: int) -> dict:
    """
    Comparison table for a product:
    {
        "tiers": [{"id", "tier_name", "price", ...}],
        "rows": [{"coverage_type": "Innbo", "values": {"<tier_id>": "2 MNOK"}}]
    }
    """
    tiers = list_tiers(product_id)
    cells = {
        (detail.tier_id, detail.coverage_type): detail.coverage_value
        for tier in tiers
        for detail in tier.coverage
    }
    rows = [
        {
            "coverage_type": coverage_type,
            "values": {str(tier.id): cells.get((tier.id, coverage_type), NOT_COVERED) for tier in tiers},
        }
        for coverage_type, _ in _coverage_types(product_id)
    ]
    return {"product_id": product_id, "tiers": [t.to_dict() for t in tiers], "rows": rows}


def add_coverage_type(product_id: int, coverage_type: str) -> dict:
    coverage_type = (coverage_type or "").strip()
    if not coverage_type:
        raise ValidationError("coverage_type is required")
    tiers = list_tiers(product_id)
    if not tiers:
        raise ValidationError("Add a tier before adding coverage types")

    existing = _coverage_types(product_id)
    if any(name.lower() == coverage_type.lower() for name, _ in existing):
        raise ConflictError(f"Coverage type '{coverage_type}' already exists")

    next_order = max((order for _, order in existing), default=0) + 1
    for tier in tiers:
        db.session.add(InsuranceCoverageDetail(
            tier_id=tier.id,
            coverage_type=coverage_type,
            coverage_value=NOT_COVERED,
            sort_order=next_order,
        ))
    db.session.commit()
    return coverage_table(product_id)


def set_coverage_value(tier_id: int, coverage_type: str, coverage_value: str) -> InsuranceCoverageDetail:
    tier = get_tier(tier_id)
    detail = db.session.query(InsuranceCoverageDetail).filter_by(tier_id=tier.id, coverage_type=coverage_type).first()
    if detail is None:
        raise NotFoundError(f"Coverage type '{coverage_type}' not found for this tier")
    detail.coverage_value = (coverage_value or "").strip() or NOT_COVERED
    db.session.commit()
    return detail


def delete_coverage_type(product_id: int, coverage_type: str) -> dict:
    tier_ids = [tier.id for tier in list_tiers(product_id)]
    details = (
        db.session.query(InsuranceCoverageDetail)
        .filter(
            InsuranceCoverageDetail.tier_id.in_(tier_ids),
            InsuranceCoverageDetail.coverage_type == coverage_type,
        )
        .all()
    )
    if not details:
        raise NotFoundError(f"Coverage type '{coverage_type}' not found")
    for detail in details:
        db.session.delete(detail)
    db.session.commit()
    return coverage_table(product_id)


# -- Documents --

def add_document(product_id: int, payload: dict, *, uploaded_by: User | None = None) -> InsuranceProductDocument:
    """A document without tier_id applies to every tier of the product."""
    get_product(product_id)
    patch = validate_payload(model=InsuranceProductDocument, payload=payload, policy=DOCUMENT_POLICY, partial=False)
    patch.setdefault("document_type", "vilkar")
    require_choice("document_type", patch["document_type"], DOCUMENT_TYPES)

    tier_id = patch.get("tier_id")
    if tier_id is not None and get_tier(tier_id).product_id != product_id:
        raise ValidationError("tier_id belongs to another product")

    document = InsuranceProductDocument(
        product_id=product_id,
        uploaded_by_user_id=uploaded_by.id if uploaded_by else None,
        **patch,
    )
    db.session.add(document)
    db.session.commit()
    return document


def list_documents(product_id: int, *, tier_id: int | None = None) -> list[InsuranceProductDocument]:
    """All documents, or those for `tier_id` plus the product-wide ones."""
    get_product(product_id)
    query = db.session.query(InsuranceProductDocument).filter_by(product_id=product_id)
    if tier_id is not None:
        query = query.filter(db.or_(
            InsuranceProductDocument.tier_id == tier_id,
            InsuranceProductDocument.tier_id.is_(None),
        ))
    return query.order_by(InsuranceProductDocument.document_type.asc(), InsuranceProductDocument.id.asc()).all()


def delete_document(document_id: int) -> None:
    document = db.session.get(InsuranceProductDocument, document_id)
    if not document:
        raise NotFoundError("Document not found")
    db.session.delete(document)
    db.session.commit()
