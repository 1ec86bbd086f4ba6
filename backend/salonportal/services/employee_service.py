# Overview: Service-layer operations for employees (ansatte); encapsulates business logic and database work.

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..calculator.money import round_half_up
from ..extensions import db
from ..integrations import functions
from ..models import Employee, Salon, User
from ..permissions import SALON_ROLES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_choice,
    require_non_negative,
    require_percentage,
    validate_payload,
)
from salonportal.time_utils import utcnow
from . import tariff_service


logger = logging.getLogger(__name__)

FULL_TIME_WEEKLY_HOURS = 37.5
HOURS_PER_VACATION_DAY = 7.5

POSITIONS = ("frisor", "senior_frisor", "laerling", "daglig_leder", "avdelingsleder", "salongeier")
EMPLOYMENT_TYPES = ("fast", "midlertidig", "tilkalling")
WAGE_TYPES = ("timelonn", "fastlonn", "provisjon", "timelonn_provisjon")
STATUSES = ("aktiv", "permisjon", "sluttet")

VACATION_DAYS = {
    "lovfestet": 21,
    "tariffavtale": 25,
    "utvidet": 30,
}

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name", "last_name", "email", "phone", "birth_date",
        "start_date", "end_date", "position", "trade_certificate", "seniority_years",
        "employment_type", "employment_percentage",
        "wage_type", "hourly_rate", "monthly_salary",
        "commission_treatment_pct", "commission_goods_pct",
        "commission_treatment_high_pct", "commission_threshold",
        "vacation_type", "status",
    },
    required_on_create={"first_name", "last_name"},
)


@dataclass
class ImportResult:
    created: list[Employee] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": len(self.created),
            "failed": len(self.errors),
            "errors": self.errors,
            "employees": [employee.to_dict() for employee in self.created],
        }


def weekly_hours_for(employment_percentage: float) -> float:
    return round_half_up(FULL_TIME_WEEKLY_HOURS * employment_percentage / 100, 2)


def vacation_hours_for(vacation_type: str, employment_percentage: float) -> float:
    days = VACATION_DAYS.get(vacation_type, VACATION_DAYS["tariffavtale"])
    return round_half_up(days * HOURS_PER_VACATION_DAY * employment_percentage / 100, 2)


def _enforce_rules(patch: dict, existing: Employee | None = None) -> None:
    require_choice("position", patch.get("position"), POSITIONS)
    require_choice("trade_certificate", patch.get("trade_certificate"), tariff_service.TRADE_CERTIFICATES)
    require_choice("employment_type", patch.get("employment_type"), EMPLOYMENT_TYPES)
    require_choice("wage_type", patch.get("wage_type"), WAGE_TYPES)
    require_choice("vacation_type", patch.get("vacation_type"), tuple(VACATION_DAYS))
    require_choice("status", patch.get("status"), STATUSES)
    require_percentage(
        patch,
        "employment_percentage",
        "commission_treatment_pct",
        "commission_goods_pct",
        "commission_treatment_high_pct",
    )
    require_non_negative(patch, "hourly_rate", "monthly_salary", "commission_threshold", "seniority_years")

    wage_type = patch.get("wage_type", existing.wage_type if existing else "timelonn")
    if wage_type in ("provisjon", "timelonn_provisjon"):
        treatment = patch.get("commission_treatment_pct", existing.commission_treatment_pct if existing else None)
        goods = patch.get("commission_goods_pct", existing.commission_goods_pct if existing else None)
        if treatment is None and goods is None:
            raise ValidationError("Commission wage types need at least one commission percentage")

    start = patch.get("start_date", existing.start_date if existing else None)
    end = patch.get("end_date", existing.end_date if existing else None)
    if start and end and end < start:
        raise ValidationError("end_date must be on or after start_date")


def _recalculate(employee: Employee) -> None:
    pct = employee.employment_percentage if employee.employment_percentage is not None else 100.0
    employee.weekly_hours = weekly_hours_for(pct)
    employee.vacation_hours_per_year = vacation_hours_for(employee.vacation_type or "tariffavtale", pct)


def _build(salon_id: int, payload: dict) -> Employee:
    patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False)
    _enforce_rules(patch)
    employee = Employee(salon_id=salon_id, **patch)
    # Column defaults only apply on flush; derived fields need them now
    for column, default in (
        ("employment_percentage", 100.0),
        ("vacation_type", "tariffavtale"),
        ("position", "frisor"),
        ("trade_certificate", "med_fagbrev"),
        ("employment_type", "fast"),
        ("wage_type", "timelonn"),
        ("seniority_years", 0),
        ("status", "aktiv"),
    ):
        if getattr(employee, column) is None:
            setattr(employee, column, default)
    _recalculate(employee)
    return employee


def create_employee(salon_id: int, payload: dict) -> Employee:
    if db.session.get(Salon, salon_id) is None:
        raise NotFoundError("Salon not found")
    employee = _build(salon_id, payload)
    db.session.add(employee)
    db.session.commit()
    return employee


def update_employee(employee_id: int, payload: dict) -> Employee:
    employee = get_employee(employee_id)
    patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=True)
    _enforce_rules(patch, existing=employee)
    for key, value in patch.items():
        setattr(employee, key, value)
    _recalculate(employee)
    db.session.commit()
    return employee


def get_employee(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise NotFoundError("Employee not found")
    return employee


def list_employees(*, salon_ids: set[int] | None = None, salon_id: int | None = None, status: str | None = None) -> list[Employee]:
    query = db.session.query(Employee)
    if salon_ids is not None:
        if not salon_ids:
            return []
        query = query.filter(Employee.salon_id.in_(salon_ids))
    if salon_id is not None:
        query = query.filter(Employee.salon_id == salon_id)
    if status:
        query = query.filter(Employee.status == status)
    return query.order_by(Employee.last_name.asc(), Employee.first_name.asc()).all()


def terminate_employee(employee_id: int, end_date=None) -> Employee:
    employee = get_employee(employee_id)
    employee.status = "sluttet"
    employee.end_date = end_date or utcnow().date()
    if employee.start_date and employee.end_date < employee.start_date:
        raise ValidationError("end_date must be on or after start_date")
    db.session.commit()
    return employee


def import_employees(salon_id: int, rows: list[dict]) -> ImportResult:
    """
    Create employees from spreadsheet-style rows.

    Each row is validated independently; valid rows are inserted in one
    commit and invalid rows are reported with their 1-based row number.
    """
    if db.session.get(Salon, salon_id) is None:
        raise NotFoundError("Salon not found")
    if not isinstance(rows, list) or not rows:
        raise ValidationError("rows must be a non-empty list")

    result = ImportResult()
    for index, row in enumerate(rows, start=1):
        try:
            employee = _build(salon_id, row)
        except ValueError as exc:
            result.errors.append({"row": index, "error": str(exc)})
            continue
        db.session.add(employee)
        result.created.append(employee)

    db.session.commit()
    logger.info("Imported %d employees for salon %s (%d rejected)", len(result.created), salon_id, len(result.errors))
    return result


def link_user(employee_id: int, user_id: int | None) -> Employee:
    """Link (or with None, unlink) the employee's portal account."""
    employee = get_employee(employee_id)
    if user_id is not None:
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        other = db.session.query(Employee).filter(Employee.user_id == user_id, Employee.id != employee_id).first()
        if other:
            raise ConflictError("User is already linked to another employee")
        if user.salon_id is not None and user.salon_id != employee.salon_id:
            raise ValidationError("User belongs to a different salon")
    employee.user_id = user_id
    db.session.commit()
    return employee


def create_user_for_employee(employee_id: int, role: str = "stylist") -> dict:
    """
    Ask the hosted create-employee-user function to provision a login and
    link the returned user id.
    """
    employee = get_employee(employee_id)
    if employee.user_id is not None:
        raise ConflictError("Employee already has a user account")
    if not employee.email:
        raise ValidationError("Employee needs an email before a user can be created")
    if role not in SALON_ROLES:
        raise ValidationError("Employees can only be given salon roles")

    response = functions.invoke(functions.CREATE_EMPLOYEE_USER, {
        "employeeId": employee.id,
        "email": employee.email,
        "name": employee.full_name,
        "phone": employee.phone,
        "role": role,
        "salonId": employee.salon_id,
    })

    user_id = response.get("userId") or response.get("user_id")
    if user_id is not None and db.session.get(User, int(user_id)) is not None:
        employee.user_id = int(user_id)
        db.session.commit()
    return {"employee": employee.to_dict(), "function_response": response}


def suggest_tariff(employee_id: int, year: int) -> dict:
    """Tariff bracket matching the employee's certificate and seniority."""
    employee = get_employee(employee_id)
    tariff = tariff_service.find_tariff(year, employee.trade_certificate, employee.seniority_years or 0)
    if tariff is None:
        return {"tariff": None, "below_tariff": None}

    below = None
    if employee.hourly_rate is not None:
        below = employee.hourly_rate < tariff.hourly_rate
    return {"tariff": tariff.to_dict(), "below_tariff": below}
