from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z


MONTH_NAMES = (
    "Januar", "Februar", "Mars", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Desember",
)


class MonthlyChallenge(db.Model):
    """
    KPI challenge shown to salons for a month, quarter, half-year or year.

    `month` is the index within the period type: 1-12 for months, 1-4 for
    quarters, 1-2 for half-years and always 1 for a whole year.
    """
    __tablename__ = "monthly_challenges"
    __table_args__ = (
        db.Index("ix_monthly_challenges_year_month", "year", "month"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    goal_description = db.Column(db.Text, nullable=True)
    kpi_focus = db.Column(db.String(32), nullable=False)
    target_value = db.Column(db.Float, nullable=True)

    period_type = db.Column(db.String(16), nullable=False, default="month")  # month, quarter, half_year, year
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def period_label(self) -> str:
        if self.period_type == "month":
            return f"{MONTH_NAMES[self.month - 1]} {self.year}"
        if self.period_type == "quarter":
            return f"Q{self.month} {self.year}"
        if self.period_type == "half_year":
            return f"H{self.month} {self.year}"
        return str(self.year)

    @property
    def months(self) -> range:
        """Calendar months (1-12) the challenge runs over."""
        if self.period_type == "month":
            return range(self.month, self.month + 1)
        if self.period_type == "quarter":
            return range(self.month * 3 - 2, self.month * 3 + 1)
        if self.period_type == "half_year":
            return range(self.month * 6 - 5, self.month * 6 + 1)
        return range(1, 13)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "goal_description": self.goal_description,
            "kpi_focus": self.kpi_focus,
            "target_value": self.target_value,
            "period_type": self.period_type,
            "year": self.year,
            "month": self.month,
            "period_label": self.period_label,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
