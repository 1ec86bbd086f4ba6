# Overview: Service-layer operations for users and role changes; encapsulates business logic and database work.

"""
User and Role Management

ROLE CHANGES:
- The target role's required association is validated first
- Associations follow the role group:
    district role -> district_id set, salon_id kept
    salon role    -> salon_id set, district_id and supplier_id cleared
    supplier role -> supplier_id set, salon_id and district_id cleared
    admin         -> all associations cleared
- Every change is written to role_change_audit
- The user is notified through the hosted notification function;
  a failed notification is logged and never undoes the change

BULK: users are processed one at a time and each change commits on its
own. A failure midway leaves earlier changes applied; the result reports
how many succeeded, failed and were skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..extensions import db
from ..integrations import functions
from ..models import RoleChangeAudit, User
from ..permissions import roles
from ..validation import NotFoundError, ValidationError
from .auth_service import validate_role_association
from . import session_service


logger = logging.getLogger(__name__)


@dataclass
class BulkRoleResult:
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": self.errors,
        }


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(
    *,
    role: str | None = None,
    salon_ids: set[int] | None = None,
    supplier_id: int | None = None,
    search: str | None = None,
    include_inactive: bool = False,
) -> list[User]:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    if salon_ids is not None:
        if not salon_ids:
            return []
        query = query.filter(User.salon_id.in_(salon_ids))
    if supplier_id is not None:
        query = query.filter(User.supplier_id == supplier_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(db.func.lower(User.email).like(pattern), db.func.lower(User.name).like(pattern))
        )
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.email.asc()).all()


def _apply_association(user: User, new_role: str, salon_id, district_id, supplier_id) -> None:
    if new_role in roles.DISTRICT_ROLES:
        user.district_id = district_id
        user.supplier_id = None
    elif new_role in roles.SALON_ROLES:
        user.salon_id = salon_id
        user.district_id = None
        user.supplier_id = None
    elif new_role in roles.SUPPLIER_ROLES:
        user.supplier_id = supplier_id
        user.salon_id = None
        user.district_id = None
    else:
        user.salon_id = None
        user.district_id = None
        user.supplier_id = None


def _notify_role_change(user: User, old_role: str | None, new_role: str) -> bool:
    try:
        functions.invoke(functions.SEND_ROLE_CHANGE_NOTIFICATION, {
            "userEmail": user.email,
            "userName": user.display_name,
            "oldRole": old_role,
            "newRole": new_role,
        })
        return True
    except functions.FunctionInvocationError:
        logger.warning("Role change notification failed for user %s", user.id, exc_info=True)
        return False


def update_user_role(
    user_id: int,
    new_role: str,
    *,
    changed_by: User | None = None,
    salon_id: int | None = None,
    district_id: int | None = None,
    supplier_id: int | None = None,
    notify: bool = True,
) -> User:
    """
    Change a user's role and association, audit it and notify the user.

    Existing sessions are revoked so the user re-authenticates under the
    new role.
    """
    user = get_user(user_id)
    validate_role_association(new_role, salon_id=salon_id, district_id=district_id, supplier_id=supplier_id)

    if changed_by is not None and changed_by.id == user.id and new_role != roles.ADMIN and user.role == roles.ADMIN:
        raise ValidationError("Administrators cannot remove their own admin role")

    old_role = user.role
    before = (user.salon_id, user.district_id, user.supplier_id)
    _apply_association(user, new_role, salon_id, district_id, supplier_id)
    after = (user.salon_id, user.district_id, user.supplier_id)

    if old_role == new_role and before == after:
        return user

    user.role = new_role
    db.session.add(RoleChangeAudit(
        user_id=user.id,
        user_email=user.email,
        user_name=user.name,
        old_role=old_role,
        new_role=new_role,
        changed_by_user_id=changed_by.id if changed_by else None,
        changed_by_name=changed_by.display_name if changed_by else None,
    ))
    db.session.commit()

    logger.info("User %s role changed %s -> %s", user.id, old_role, new_role)

    if old_role != new_role:
        session_service.revoke_all_user_sessions(user.id, reason="Role changed")
        if notify:
            _notify_role_change(user, old_role, new_role)

    return user


def bulk_update_roles(user_ids: list[int], new_role: str, *, changed_by: User | None = None) -> BulkRoleResult:
    """
    Apply one role to many users, sequentially and without a wrapping
    transaction.

    A bulk request carries no salon/district/supplier, so each user keeps
    the association they already have and is validated against the new
    role on its own: a user without the required association fails
    instead of being assigned an invalid role. Users already in the role
    are skipped.
    """
    if new_role not in roles.ALL_ROLES:
        raise ValidationError(f"Unknown role: {new_role}")
    if not user_ids:
        raise ValidationError("No users selected")

    result = BulkRoleResult()
    for user_id in user_ids:
        user = db.session.get(User, user_id)
        if user is None:
            result.failed += 1
            result.errors.append({"user_id": user_id, "error": "User not found"})
            continue
        if user.role == new_role:
            result.skipped += 1
            continue
        try:
            update_user_role(
                user_id,
                new_role,
                changed_by=changed_by,
                salon_id=user.salon_id,
                district_id=user.district_id,
                supplier_id=user.supplier_id,
            )
            result.succeeded += 1
        except ValueError as exc:
            db.session.rollback()
            result.failed += 1
            result.errors.append({"user_id": user_id, "error": str(exc)})

    logger.info(
        "Bulk role update to %s: %d succeeded, %d failed, %d skipped",
        new_role, result.succeeded, result.failed, result.skipped,
    )
    return result


def list_role_changes(*, user_id: int | None = None, limit: int = 200) -> list[RoleChangeAudit]:
    query = db.session.query(RoleChangeAudit)
    if user_id is not None:
        query = query.filter(RoleChangeAudit.user_id == user_id)
    return query.order_by(RoleChangeAudit.changed_at.desc(), RoleChangeAudit.id.desc()).limit(limit).all()


def update_profile(user_id: int, *, name: str | None = None, phone: str | None = None) -> User:
    user = get_user(user_id)
    if name is not None:
        user.name = name.strip() or None
    if phone is not None:
        user.phone = phone.strip() or None
    db.session.commit()
    return user


def set_user_active(user_id: int, is_active: bool, *, changed_by: User | None = None) -> User:
    user = get_user(user_id)
    if changed_by is not None and changed_by.id == user.id and not is_active:
        raise ValidationError("You cannot deactivate your own account")
    user.is_active = is_active
    db.session.commit()
    if not is_active:
        session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
    return user
