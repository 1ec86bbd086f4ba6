# Overview: Service-layer operations for salons, chains and districts; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Chain, District, Salon, User
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    normalize_org_number,
    validate_payload,
)


SALON_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "chain_id", "district_id", "org_number", "member_number",
        "address", "postal_code", "city", "email", "phone",
        "hubspot_company_id", "is_active",
    },
    required_on_create={"name"},
)

# Salon leaders may only touch contact details of their own salon
OWNER_EDITABLE_FIELDS = {"address", "postal_code", "city", "email", "phone"}


def _check_unique_identifiers(patch: dict, salon_id: int | None = None) -> None:
    for field in ("org_number", "member_number", "hubspot_company_id"):
        value = patch.get(field)
        if not value:
            continue
        query = db.session.query(Salon).filter(getattr(Salon, field) == value)
        if salon_id is not None:
            query = query.filter(Salon.id != salon_id)
        if query.first():
            raise ConflictError(f"Another salon already has {field} {value}")


def _check_groupings(patch: dict) -> None:
    if patch.get("chain_id") is not None and db.session.get(Chain, patch["chain_id"]) is None:
        raise ValidationError("Chain not found")
    if patch.get("district_id") is not None and db.session.get(District, patch["district_id"]) is None:
        raise ValidationError("District not found")


def create_salon(payload: dict) -> Salon:
    patch = validate_payload(model=Salon, payload=payload, policy=SALON_POLICY, partial=False)
    if "org_number" in patch:
        patch["org_number"] = normalize_org_number(patch["org_number"])
    _check_groupings(patch)
    _check_unique_identifiers(patch)

    salon = Salon(**patch)
    db.session.add(salon)
    db.session.commit()
    return salon


def update_salon(salon_id: int, payload: dict, *, allowed_fields: set[str] | None = None) -> Salon:
    salon = get_salon(salon_id)

    if allowed_fields is not None:
        blocked = sorted(set(payload or {}) - allowed_fields)
        if blocked:
            raise ValidationError(f"Field not allowed: {', '.join(blocked)}")

    patch = validate_payload(model=Salon, payload=payload, policy=SALON_POLICY, partial=True)
    if "org_number" in patch:
        patch["org_number"] = normalize_org_number(patch["org_number"])
    _check_groupings(patch)
    _check_unique_identifiers(patch, salon_id=salon_id)

    for key, value in patch.items():
        setattr(salon, key, value)
    db.session.commit()
    return salon


def get_salon(salon_id: int) -> Salon:
    salon = db.session.get(Salon, salon_id)
    if not salon:
        raise NotFoundError("Salon not found")
    return salon


def find_salon_by_org_number(org_number: str | None) -> Salon | None:
    if not org_number:
        return None
    return db.session.query(Salon).filter_by(org_number=org_number).first()


def list_salons(
    *,
    salon_ids: set[int] | None = None,
    district_id: int | None = None,
    chain_id: int | None = None,
    search: str | None = None,
    include_inactive: bool = False,
) -> list[Salon]:
    """
    List salons, optionally restricted to `salon_ids` (the caller's scope).
    """
    query = db.session.query(Salon)
    if salon_ids is not None:
        if not salon_ids:
            return []
        query = query.filter(Salon.id.in_(salon_ids))
    if district_id is not None:
        query = query.filter(Salon.district_id == district_id)
    if chain_id is not None:
        query = query.filter(Salon.chain_id == chain_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                db.func.lower(Salon.name).like(pattern),
                db.func.lower(Salon.city).like(pattern),
                Salon.org_number.like(pattern),
            )
        )
    if not include_inactive:
        query = query.filter(Salon.is_active.is_(True))
    return query.order_by(Salon.name.asc()).all()


def deactivate_salon(salon_id: int) -> Salon:
    salon = get_salon(salon_id)
    salon.is_active = False
    db.session.commit()
    return salon


# -- Chains --

def create_chain(name: str, org_number: str | None = None) -> Chain:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Chain name is required")
    if db.session.query(Chain).filter(db.func.lower(Chain.name) == name.lower()).first():
        raise ConflictError("A chain with this name already exists")
    chain = Chain(name=name, org_number=normalize_org_number(org_number))
    db.session.add(chain)
    db.session.commit()
    return chain


def list_chains() -> list[Chain]:
    return db.session.query(Chain).order_by(Chain.name.asc()).all()


def add_salon_to_chain(chain_id: int, salon_id: int) -> Salon:
    if db.session.get(Chain, chain_id) is None:
        raise NotFoundError("Chain not found")
    salon = get_salon(salon_id)
    salon.chain_id = chain_id
    db.session.commit()
    return salon


def remove_salon_from_chain(chain_id: int, salon_id: int) -> Salon:
    """Detach the salon; the salon itself is never deleted."""
    salon = get_salon(salon_id)
    if salon.chain_id != chain_id:
        raise ValidationError("Salon is not part of this chain")
    salon.chain_id = None
    db.session.commit()
    return salon


def delete_chain(chain_id: int) -> None:
    chain = db.session.get(Chain, chain_id)
    if not chain:
        raise NotFoundError("Chain not found")
    db.session.query(Salon).filter(Salon.chain_id == chain_id).update(
        {Salon.chain_id: None}, synchronize_session=False
    )
    db.session.delete(chain)
    db.session.commit()


# -- Districts --

def create_district(name: str, description: str | None = None) -> District:
    name = (name or "").strip()
    if not name:
        raise ValidationError("District name is required")
    if db.session.query(District).filter(db.func.lower(District.name) == name.lower()).first():
        raise ConflictError("A district with this name already exists")
    district = District(name=name, description=description)
    db.session.add(district)
    db.session.commit()
    return district


def update_district(district_id: int, *, name: str | None = None, description: str | None = None) -> District:
    district = db.session.get(District, district_id)
    if not district:
        raise NotFoundError("District not found")
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("District name is required")
        district.name = name
    if description is not None:
        district.description = description
    db.session.commit()
    return district


def list_districts() -> list[District]:
    return db.session.query(District).order_by(District.name.asc()).all()


def delete_district(district_id: int) -> None:
    """
    Delete a district. Salons and users keep their records; only the
    association is cleared.
    """
    district = db.session.get(District, district_id)
    if not district:
        raise NotFoundError("District not found")
    db.session.query(Salon).filter(Salon.district_id == district_id).update(
        {Salon.district_id: None}, synchronize_session=False
    )
    db.session.query(User).filter(User.district_id == district_id).update(
        {User.district_id: None}, synchronize_session=False
    )
    db.session.delete(district)
    db.session.commit()
