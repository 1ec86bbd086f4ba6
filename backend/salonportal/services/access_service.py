# Overview: Salon scope resolution per role; decides which salons a user may see.

from __future__ import annotations

from ..extensions import db
from ..models import Salon, SupplierSalonLink, User
from ..permissions import roles
from .permission_service import PermissionDeniedError


class ScopeDeniedError(PermissionDeniedError):
    """Raised when a salon or supplier is outside the user's scope."""


def accessible_salon_ids(user: User) -> set[int] | None:
    """
    Salon IDs visible to the user. None means unrestricted (admin).

    - district_manager: salons in the user's district
    - chain_owner: salons in the chain of the user's salon
    - other salon roles: the user's own salon
    - supplier roles: salons linked to the user's supplier
    """
    if user.role == roles.ADMIN:
        return None

    if user.role in roles.DISTRICT_ROLES:
        if user.district_id is None:
            return set()
        rows = db.session.query(Salon.id).filter(Salon.district_id == user.district_id).all()
        return {row[0] for row in rows}

    if user.role == roles.CHAIN_OWNER and user.salon_id is not None:
        salon = db.session.get(Salon, user.salon_id)
        if salon and salon.chain_id is not None:
            rows = db.session.query(Salon.id).filter(Salon.chain_id == salon.chain_id).all()
            return {row[0] for row in rows}
        return {user.salon_id}

    if user.role in roles.SALON_ROLES:
        return {user.salon_id} if user.salon_id is not None else set()

    if user.role in roles.SUPPLIER_ROLES:
        if user.supplier_id is None:
            return set()
        rows = db.session.query(SupplierSalonLink.salon_id).filter(
            SupplierSalonLink.supplier_id == user.supplier_id
        ).all()
        return {row[0] for row in rows}

    return set()


def can_access_salon(user: User, salon_id: int | None) -> bool:
    if salon_id is None:
        return user.role == roles.ADMIN
    scope = accessible_salon_ids(user)
    return scope is None or salon_id in scope


def require_salon_access(user: User, salon_id: int | None) -> None:
    if not can_access_salon(user, salon_id):
        raise ScopeDeniedError(f"Salon {salon_id} is outside your access scope")


def can_access_supplier(user: User, supplier_id: int) -> bool:
    """Supplier users only see their own supplier; other roles are not restricted here."""
    if user.role in roles.SUPPLIER_ROLES:
        return user.supplier_id == supplier_id
    return True


def require_supplier_access(user: User, supplier_id: int) -> None:
    if not can_access_supplier(user, supplier_id):
        raise ScopeDeniedError(f"Supplier {supplier_id} is outside your access scope")
