# Overview: Service-layer operations for suppliers, brands and partner salons; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Salon, Supplier, SupplierBrand, SupplierSalonLink, User
from ..permissions import SUPPLIER_ROLES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    normalize_org_number,
    validate_payload,
)


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "org_number", "contact_email", "cumulative_reporting", "hubspot_company_id", "is_active"},
    required_on_create={"name"},
)


def _check_unique(patch: dict, supplier_id: int | None = None) -> None:
    for field in ("name", "org_number", "hubspot_company_id"):
        value = patch.get(field)
        if not value:
            continue
        query = db.session.query(Supplier).filter(getattr(Supplier, field) == value)
        if supplier_id is not None:
            query = query.filter(Supplier.id != supplier_id)
        if query.first():
            raise ConflictError(f"Another supplier already has {field} {value}")


def create_supplier(payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    if "org_number" in patch:
        patch["org_number"] = normalize_org_number(patch["org_number"])
    _check_unique(patch)
    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    if "org_number" in patch:
        patch["org_number"] = normalize_org_number(patch["org_number"])
    _check_unique(patch, supplier_id=supplier_id)
    for key, value in patch.items():
        setattr(supplier, key, value)
    db.session.commit()
    return supplier


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def list_suppliers(*, include_inactive: bool = False, supplier_id: int | None = None) -> list[Supplier]:
    query = db.session.query(Supplier)
    if supplier_id is not None:
        query = query.filter(Supplier.id == supplier_id)
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.name.asc()).all()


# -- Brands --

def add_brand(supplier_id: int, name: str) -> SupplierBrand:
    get_supplier(supplier_id)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Brand name is required")
    existing = db.session.query(SupplierBrand).filter(
        SupplierBrand.supplier_id == supplier_id,
        db.func.lower(SupplierBrand.name) == name.lower(),
    ).first()
    if existing:
        raise ConflictError("Brand already exists for this supplier")
    brand = SupplierBrand(supplier_id=supplier_id, name=name, is_active=True)
    db.session.add(brand)
    db.session.commit()
    return brand


def list_brands(supplier_id: int) -> list[SupplierBrand]:
    return db.session.query(SupplierBrand).filter_by(supplier_id=supplier_id).order_by(SupplierBrand.name.asc()).all()


def find_brand(supplier_id: int, name: str | None) -> SupplierBrand | None:
    if not name:
        return None
    return db.session.query(SupplierBrand).filter(
        SupplierBrand.supplier_id == supplier_id,
        db.func.lower(SupplierBrand.name) == name.strip().lower(),
    ).first()


def set_brand_active(brand_id: int, is_active: bool) -> SupplierBrand:
    brand = db.session.get(SupplierBrand, brand_id)
    if not brand:
        raise NotFoundError("Brand not found")
    brand.is_active = is_active
    db.session.commit()
    return brand


# -- Partner salons --

def link_salon(supplier_id: int, salon_id: int) -> SupplierSalonLink:
    get_supplier(supplier_id)
    if db.session.get(Salon, salon_id) is None:
        raise NotFoundError("Salon not found")
    existing = db.session.query(SupplierSalonLink).filter_by(supplier_id=supplier_id, salon_id=salon_id).first()
    if existing:
        return existing
    link = SupplierSalonLink(supplier_id=supplier_id, salon_id=salon_id)
    db.session.add(link)
    db.session.commit()
    return link


def unlink_salon(supplier_id: int, salon_id: int) -> bool:
    link = db.session.query(SupplierSalonLink).filter_by(supplier_id=supplier_id, salon_id=salon_id).first()
    if not link:
        return False
    db.session.delete(link)
    db.session.commit()
    return True


def list_linked_salons(supplier_id: int) -> list[Salon]:
    return (
        db.session.query(Salon)
        .join(SupplierSalonLink, SupplierSalonLink.salon_id == Salon.id)
        .filter(SupplierSalonLink.supplier_id == supplier_id)
        .order_by(Salon.name.asc())
        .all()
    )


def list_team(supplier_id: int) -> list[User]:
    """Portal users working for the supplier."""
    return (
        db.session.query(User)
        .filter(User.supplier_id == supplier_id, User.role.in_(SUPPLIER_ROLES))
        .order_by(User.email.asc())
        .all()
    )
