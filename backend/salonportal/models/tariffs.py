from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z, to_iso_date


class TariffTemplate(db.Model):
    """
    One bracket of the centrally defined wage table (tariffmal).

    A bracket is identified by year + trade certificate + seniority range.
    seniority_max NULL means open-ended ("10 years and above").
    """
    __tablename__ = "tariff_templates"
    __table_args__ = (
        db.Index("ix_tariff_templates_year_cert", "year", "trade_certificate"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    trade_certificate = db.Column(db.String(16), nullable=False)
    seniority_min = db.Column(db.Integer, nullable=False, default=0)
    seniority_max = db.Column(db.Integer, nullable=True)

    hourly_rate = db.Column(db.Float, nullable=False)
    monthly_salary = db.Column(db.Float, nullable=True)

    valid_from = db.Column(db.Date, nullable=False)
    valid_to = db.Column(db.Date, nullable=True)

    description = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "name": self.name,
            "trade_certificate": self.trade_certificate,
            "seniority_min": self.seniority_min,
            "seniority_max": self.seniority_max,
            "hourly_rate": self.hourly_rate,
            "monthly_salary": self.monthly_salary,
            "valid_from": to_iso_date(self.valid_from),
            "valid_to": to_iso_date(self.valid_to),
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
