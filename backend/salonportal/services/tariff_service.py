# Overview: Service-layer operations for wage tariff tables; encapsulates business logic and database work.

from __future__ import annotations

import logging
from datetime import date

from ..calculator.money import round_half_up
from ..extensions import db
from ..models import TariffTemplate, User
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

TRADE_CERTIFICATES = ("med_fagbrev", "uten_fagbrev", "mester")

# Monthly equivalent of a full-time hourly rate (37.5 h x 52 / 12)
MONTHLY_HOURS = 162.5

TARIFF_POLICY = ModelValidationPolicy(
    writable_fields={
        "year", "name", "trade_certificate", "seniority_min", "seniority_max",
        "hourly_rate", "monthly_salary", "valid_from", "valid_to", "description",
    },
    required_on_create={"year", "name", "trade_certificate", "hourly_rate"},
)


def monthly_from_hourly(hourly_rate: float) -> float:
    return float(round_half_up(hourly_rate * MONTHLY_HOURS, 0))


def _enforce_rules(patch: dict, existing: TariffTemplate | None = None) -> None:
    require_choice("trade_certificate", patch.get("trade_certificate"), TRADE_CERTIFICATES)
    require_non_negative(patch, "hourly_rate", "monthly_salary", "seniority_min", "seniority_max")

    seniority_min = patch.get("seniority_min", existing.seniority_min if existing else 0) or 0
    seniority_max = patch.get("seniority_max", existing.seniority_max if existing else None)
    if seniority_max is not None and seniority_max < seniority_min:
        raise ValidationError("seniority_max must be >= seniority_min")

    valid_from = patch.get("valid_from", existing.valid_from if existing else None)
    valid_to = patch.get("valid_to", existing.valid_to if existing else None)
    if valid_from and valid_to and valid_to < valid_from:
        raise ValidationError("valid_to must be on or after valid_from")


def create_tariff(payload: dict, *, created_by: User | None = None) -> TariffTemplate:
    patch = validate_payload(model=TariffTemplate, payload=payload, policy=TARIFF_POLICY, partial=False)
    _enforce_rules(patch)

    patch.setdefault("seniority_min", 0)
    if patch.get("monthly_salary") is None:
        patch["monthly_salary"] = monthly_from_hourly(patch["hourly_rate"])
    if patch.get("valid_from") is None:
        patch["valid_from"] = date(patch["year"], 1, 1)

    tariff = TariffTemplate(**patch, created_by_user_id=created_by.id if created_by else None)
    db.session.add(tariff)
    db.session.commit()
    return tariff


def update_tariff(tariff_id: int, payload: dict) -> TariffTemplate:
    tariff = get_tariff(tariff_id)
    patch = validate_payload(model=TariffTemplate, payload=payload, policy=TARIFF_POLICY, partial=True)
    _enforce_rules(patch, existing=tariff)
    for key, value in patch.items():
        setattr(tariff, key, value)
    db.session.commit()
    return tariff


def get_tariff(tariff_id: int) -> TariffTemplate:
    tariff = db.session.get(TariffTemplate, tariff_id)
    if not tariff:
        raise NotFoundError("Tariff not found")
    return tariff


def delete_tariff(tariff_id: int) -> None:
    db.session.delete(get_tariff(tariff_id))
    db.session.commit()


def list_tariffs(year: int | None = None) -> list[TariffTemplate]:
    query = db.session.query(TariffTemplate)
    if year is not None:
        query = query.filter(TariffTemplate.year == year)
    return query.order_by(
        TariffTemplate.year.desc(),
        TariffTemplate.trade_certificate.asc(),
        TariffTemplate.seniority_min.asc(),
    ).all()


def list_years() -> list[int]:
    rows = db.session.query(TariffTemplate.year).distinct().order_by(TariffTemplate.year.desc()).all()
    return [row[0] for row in rows]


def copy_year(
    source_year: int,
    target_year: int,
    adjustment_pct: float,
    *,
    created_by: User | None = None,
    replace: bool = False,
) -> list[TariffTemplate]:
    """
    Copy every bracket of `source_year` into `target_year`, scaling pay by
    (1 + adjustment_pct / 100).

    Hourly rates round half-up to 2 decimals and monthly pay to whole
    kroner. Bracket bounds and texts are kept; the new rows are valid from
    January 1st of the target year with an open end.

    A target year that already has brackets is refused unless `replace`
    is set, in which case its rows are deleted first.
    """
    if source_year == target_year:
        raise ValidationError("Target year must differ from source year")

    source_rows = list_tariffs(source_year)
    if not source_rows:
        raise ValidationError(f"No tariffs found for {source_year}")

    existing = db.session.query(TariffTemplate).filter(TariffTemplate.year == target_year)
    if existing.count():
        if not replace:
            raise ConflictError(f"Tariffs for {target_year} already exist")
        existing.delete(synchronize_session=False)

    factor = 1 + float(adjustment_pct) / 100
    copies = []
    for row in source_rows:
        copies.append(TariffTemplate(
            year=target_year,
            name=row.name,
            trade_certificate=row.trade_certificate,
            seniority_min=row.seniority_min,
            seniority_max=row.seniority_max,
            hourly_rate=round_half_up(row.hourly_rate * factor, 2),
            monthly_salary=float(round_half_up(row.monthly_salary * factor, 0)) if row.monthly_salary is not None else None,
            valid_from=date(target_year, 1, 1),
            valid_to=None,
            description=row.description,
            created_by_user_id=created_by.id if created_by else None,
        ))

    db.session.add_all(copies)
    db.session.commit()

    logger.info("Copied %d tariffs from %s to %s with %+.2f%%", len(copies), source_year, target_year, adjustment_pct)
    return copies


def find_tariff(year: int, trade_certificate: str, seniority_years: int) -> TariffTemplate | None:
    """Bracket for a certificate and seniority; open-ended max matches everything above min."""
    rows = db.session.query(TariffTemplate).filter(
        TariffTemplate.year == year,
        TariffTemplate.trade_certificate == trade_certificate,
        TariffTemplate.seniority_min <= seniority_years,
        db.or_(TariffTemplate.seniority_max.is_(None), TariffTemplate.seniority_max >= seniority_years),
    ).order_by(TariffTemplate.seniority_min.desc()).all()
    return rows[0] if rows else None
