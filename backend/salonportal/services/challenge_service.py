# Overview: Service-layer operations for KPI challenges; encapsulates business logic and database work.

from __future__ import annotations

import logging
from datetime import date

from ..extensions import db
from ..models import MonthlyChallenge
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_choice,
    require_non_negative,
    validate_payload,
)


logger = logging.getLogger(__name__)

KPI_FOCUS = (
    "addon_share_percent",
    "rebooking_percent",
    "efficiency_percent",
    "total_revenue",
    "revenue_per_hour",
)

# Highest `month` index allowed per period type
PERIOD_TYPES = {
    "month": 12,
    "quarter": 4,
    "half_year": 2,
    "year": 1,
}

CHALLENGE_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "goal_description", "kpi_focus",
        "target_value", "period_type", "year", "month",
    },
    required_on_create={"title", "kpi_focus", "year", "month"},
)


def _enforce_rules(challenge: MonthlyChallenge) -> None:
    require_choice("kpi_focus", challenge.kpi_focus, KPI_FOCUS)
    require_choice("period_type", challenge.period_type, tuple(PERIOD_TYPES))
    highest = PERIOD_TYPES[challenge.period_type]
    if not 1 <= challenge.month <= highest:
        raise ValidationError(f"month must be between 1 and {highest} for period_type {challenge.period_type}")
    if not 2000 <= challenge.year <= 2100:
        raise ValidationError("year is out of range")


def create_challenge(payload: dict) -> MonthlyChallenge:
    patch = validate_payload(model=MonthlyChallenge, payload=payload, policy=CHALLENGE_POLICY, partial=False)
    require_non_negative(patch, "target_value")
    patch.setdefault("period_type", "month")

    challenge = MonthlyChallenge(**patch)
    _enforce_rules(challenge)
    db.session.add(challenge)
    db.session.commit()
    logger.info("Challenge %s created for %s", challenge.id, challenge.period_label)
    return challenge


def update_challenge(challenge_id: int, payload: dict) -> MonthlyChallenge:
    challenge = get_challenge(challenge_id)
    patch = validate_payload(model=MonthlyChallenge, payload=payload, policy=CHALLENGE_POLICY, partial=True)
    require_non_negative(patch, "target_value")
    for key, value in patch.items():
        setattr(challenge, key, value)
    try:
        _enforce_rules(challenge)
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    return challenge


def get_challenge(challenge_id: int) -> MonthlyChallenge:
    challenge = db.session.get(MonthlyChallenge, challenge_id)
    if not challenge:
        raise NotFoundError("Challenge not found")
    return challenge


def delete_challenge(challenge_id: int) -> None:
    db.session.delete(get_challenge(challenge_id))
    db.session.commit()


def list_challenges(year: int | None = None) -> list[MonthlyChallenge]:
    query = db.session.query(MonthlyChallenge)
    if year is not None:
        query = query.filter(MonthlyChallenge.year == year)
    return query.order_by(
        MonthlyChallenge.year.desc(),
        MonthlyChallenge.month.desc(),
        MonthlyChallenge.id.asc(),
    ).all()


def active_on(day: date) -> list[MonthlyChallenge]:
    """Challenges whose period covers `day`, shortest period first."""
    span = {"month": 0, "quarter": 1, "half_year": 2, "year": 3}
    rows = [c for c in list_challenges(day.year) if day.month in c.months]
    return sorted(rows, key=lambda c: (span[c.period_type], c.id))
