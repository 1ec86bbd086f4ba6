from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z, to_iso_date


class Employee(db.Model):
    """
    HR record for a person working in a salon (ansatt).

    An employee may exist without a portal login; user_id links the
    record to at most one User account.

    DERIVED FIELDS (recomputed by employee_service on every save):
    - weekly_hours from employment_percentage
    - vacation_hours_per_year from vacation_type and employment_percentage
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_salon_status", "salon_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    birth_date = db.Column(db.Date, nullable=True)

    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    position = db.Column(db.String(32), nullable=False, default="frisor")
    trade_certificate = db.Column(db.String(16), nullable=False, default="med_fagbrev")
    seniority_years = db.Column(db.Integer, nullable=False, default=0)

    employment_type = db.Column(db.String(16), nullable=False, default="fast")
    employment_percentage = db.Column(db.Float, nullable=False, default=100.0)
    weekly_hours = db.Column(db.Float, nullable=False, default=37.5)

    wage_type = db.Column(db.String(24), nullable=False, default="timelonn")
    hourly_rate = db.Column(db.Float, nullable=True)
    monthly_salary = db.Column(db.Float, nullable=True)

    # Commission (provisjon), percentages 0..100
    commission_treatment_pct = db.Column(db.Float, nullable=True)
    commission_goods_pct = db.Column(db.Float, nullable=True)
    commission_treatment_high_pct = db.Column(db.Float, nullable=True)
    commission_threshold = db.Column(db.Float, nullable=True)

    vacation_type = db.Column(db.String(16), nullable=False, default="tariffavtale")
    vacation_hours_per_year = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(16), nullable=False, default="aktiv")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    salon = db.relationship("Salon", backref=db.backref("employees", lazy=True))
    user = db.relationship("User", backref=db.backref("employee", uselist=False))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salon_id": self.salon_id,
            "user_id": self.user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "birth_date": to_iso_date(self.birth_date),
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "position": self.position,
            "trade_certificate": self.trade_certificate,
            "seniority_years": self.seniority_years,
            "employment_type": self.employment_type,
            "employment_percentage": self.employment_percentage,
            "weekly_hours": self.weekly_hours,
            "wage_type": self.wage_type,
            "hourly_rate": self.hourly_rate,
            "monthly_salary": self.monthly_salary,
            "commission_treatment_pct": self.commission_treatment_pct,
            "commission_goods_pct": self.commission_goods_pct,
            "commission_treatment_high_pct": self.commission_treatment_high_pct,
            "commission_threshold": self.commission_threshold,
            "vacation_type": self.vacation_type,
            "vacation_hours_per_year": self.vacation_hours_per_year,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
