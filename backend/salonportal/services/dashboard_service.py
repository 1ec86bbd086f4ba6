# Overview: Role-shaped dashboard summaries; read-only aggregation over the other services.

from __future__ import annotations

from collections import defaultdict

from ..calculator.money import round_half_up
from ..extensions import db
from ..models import BonusCalculation, Employee, Invitation, PowerOfAttorney, Salon, User
from ..permissions import roles
from salonportal.time_utils import utcnow
from . import communications_service
from .access_service import accessible_salon_ids


def _bonus_totals(salon_ids: set[int] | None, year: int, supplier_id: int | None = None) -> dict:
    query = db.session.query(BonusCalculation).filter(
        BonusCalculation.period.like(f"{year:04d}-%"),
        BonusCalculation.salon_id.isnot(None),
    )
    if salon_ids is not None:
        if not salon_ids:
            return {"total_turnover": 0.0, "loyalty_bonus": 0.0, "return_commission": 0.0, "total_bonus": 0.0}
        query = query.filter(BonusCalculation.salon_id.in_(salon_ids))
    if supplier_id is not None:
        query = query.filter(BonusCalculation.supplier_id == supplier_id)

    totals = defaultdict(float)
    for calc in query.all():
        totals["total_turnover"] += calc.total_turnover
        totals["loyalty_bonus"] += calc.loyalty_bonus_amount
        totals["return_commission"] += calc.return_commission_amount
        totals["total_bonus"] += calc.total_bonus
    return {key: round_half_up(totals[key]) for key in ("total_turnover", "loyalty_bonus", "return_commission", "total_bonus")}


def _per_salon_totals(salon_ids: set[int], year: int) -> dict[int, dict]:
    per_salon: dict[int, dict] = {}
    for salon_id in salon_ids:
        per_salon[salon_id] = _bonus_totals({salon_id}, year)
    return per_salon


def _announcements(role: str) -> list[dict]:
    return [a.to_dict() for a in communications_service.list_visible_for_role(role)]


def get_dashboard(user: User, year: int | None = None) -> dict:
    year = year or utcnow().year
    base = {"role": user.role, "year": year, "user": user.to_dict()}

    if user.role == roles.ADMIN:
        now = utcnow()
        pending_invitations = db.session.query(Invitation).filter(
            Invitation.accepted.is_(False), Invitation.expires_at > now
        ).count()
        base.update({
            "salon_count": db.session.query(Salon).filter(Salon.is_active.is_(True)).count(),
            "user_count": db.session.query(User).filter(User.is_active.is_(True)).count(),
            "pending_invitations": pending_invitations,
            "unsigned_powers_of_attorney": db.session.query(PowerOfAttorney).filter(PowerOfAttorney.signed.is_(False)).count(),
            "bonus": _bonus_totals(None, year),
        })
        return base

    scope = accessible_salon_ids(user) or set()
    salons = db.session.query(Salon).filter(Salon.id.in_(scope)).order_by(Salon.name.asc()).all() if scope else []

    if user.role in roles.DISTRICT_ROLES:
        totals = _per_salon_totals(scope, year)
        base.update({
            "district_id": user.district_id,
            "salons": [dict(salon.to_dict(), bonus=totals[salon.id]) for salon in salons],
            "bonus": _bonus_totals(scope, year),
            "announcements": _announcements(user.role),
        })
        return base

    if user.role in roles.SUPPLIER_ROLES:
        base.update({
            "supplier_id": user.supplier_id,
            "linked_salon_count": len(salons),
            "salons": [salon.to_dict() for salon in salons],
            "bonus": _bonus_totals(None, year, supplier_id=user.supplier_id),
            "announcements": _announcements(user.role),
        })
        return base

    salon = db.session.get(Salon, user.salon_id) if user.salon_id else None
    employee_count = 0
    if salon is not None:
        employee_count = db.session.query(Employee).filter(
            Employee.salon_id == salon.id, Employee.status != "sluttet"
        ).count()
    base.update({
        "salon": salon.to_dict() if salon else None,
        "chain_salon_count": len(scope) if user.role == roles.CHAIN_OWNER else None,
        "employee_count": employee_count,
        "bonus": _bonus_totals(scope, year) if user.role in roles.SALON_LEADER_ROLES else None,
        "announcements": _announcements(user.role),
    })
    return base
