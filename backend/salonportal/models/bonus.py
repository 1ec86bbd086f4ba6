from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z, to_iso_date


class BonusRule(db.Model):
    """
    Supplier loyalty / return-commission rule.

    MATCHING: supplier, optional brand, product type (kjemi | produkt |
    begge), validity window and optional turnover bounds. The highest
    priority wins; ties go to the brand-specific rule.

    PERCENTAGES: rules of type "begge" may carry a separate pair for
    chemical (kjemi) and resale (produkt) rows. When a pair is NULL the
    general loyalty_pct / return_pct apply.
    """
    __tablename__ = "bonus_rules"
    __table_args__ = (
        db.Index("ix_bonus_rules_supplier_active", "supplier_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    brand_id = db.Column(db.Integer, db.ForeignKey("supplier_brands.id", ondelete="SET NULL"), nullable=True)

    product_type = db.Column(db.String(16), nullable=False, default="begge")

    loyalty_pct = db.Column(db.Float, nullable=False, default=0.0)
    return_pct = db.Column(db.Float, nullable=False, default=0.0)
    chemical_loyalty_pct = db.Column(db.Float, nullable=True)
    chemical_return_pct = db.Column(db.Float, nullable=True)
    resale_loyalty_pct = db.Column(db.Float, nullable=True)
    resale_return_pct = db.Column(db.Float, nullable=True)

    valid_from = db.Column(db.Date, nullable=False)
    valid_to = db.Column(db.Date, nullable=True)

    priority = db.Column(db.Integer, nullable=False, default=0)
    min_turnover = db.Column(db.Float, nullable=True)
    max_turnover = db.Column(db.Float, nullable=True)

    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("bonus_rules", lazy=True))
    brand = db.relationship("SupplierBrand")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "brand_id": self.brand_id,
            "brand_name": self.brand.name if self.brand else None,
            "product_type": self.product_type,
            "loyalty_pct": self.loyalty_pct,
            "return_pct": self.return_pct,
            "chemical_loyalty_pct": self.chemical_loyalty_pct,
            "chemical_return_pct": self.chemical_return_pct,
            "resale_loyalty_pct": self.resale_loyalty_pct,
            "resale_return_pct": self.resale_return_pct,
            "valid_from": to_iso_date(self.valid_from),
            "valid_to": to_iso_date(self.valid_to),
            "priority": self.priority,
            "min_turnover": self.min_turnover,
            "max_turnover": self.max_turnover,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SalesImport(db.Model):
    """One uploaded supplier sales report for a period."""
    __tablename__ = "sales_imports"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    period = db.Column(db.String(7), nullable=False)
    filename = db.Column(db.String(255), nullable=True)

    row_count = db.Column(db.Integer, nullable=False, default=0)
    matched_count = db.Column(db.Integer, nullable=False, default=0)
    unmatched_count = db.Column(db.Integer, nullable=False, default=0)

    imported_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "period": self.period,
            "filename": self.filename,
            "row_count": self.row_count,
            "matched_count": self.matched_count,
            "unmatched_count": self.unmatched_count,
            "imported_by_user_id": self.imported_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class ImportedSale(db.Model):
    """
    Supplier-reported sales row.

    reported_value is what the supplier sent (year-to-date for cumulative
    suppliers); delta_value is the amount for the period alone and is what
    loyalty percentages apply to. Both are kept for audit display.
    """
    __tablename__ = "imported_sales"
    __table_args__ = (
        db.Index("ix_imported_sales_supplier_period", "supplier_id", "period"),
        db.Index("ix_imported_sales_salon_period", "salon_id", "period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    import_id = db.Column(db.Integer, db.ForeignKey("sales_imports.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    period = db.Column(db.String(7), nullable=False)

    # Identity as reported by the supplier
    customer_number = db.Column(db.String(64), nullable=True)
    org_number = db.Column(db.String(9), nullable=True)
    salon_name = db.Column(db.String(255), nullable=True)

    brand = db.Column(db.String(120), nullable=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("supplier_brands.id", ondelete="SET NULL"), nullable=True)
    product_group = db.Column(db.String(16), nullable=False, default="produkt")

    reported_value = db.Column(db.Float, nullable=False, default=0.0)
    delta_value = db.Column(db.Float, nullable=False, default=0.0)

    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id", ondelete="SET NULL"), nullable=True)
    match_status = db.Column(db.String(16), nullable=False, default="unmatched")  # matched, unmatched, manual

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    salon = db.relationship("Salon")
    sales_import = db.relationship("SalesImport", backref=db.backref("rows", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "import_id": self.import_id,
            "supplier_id": self.supplier_id,
            "period": self.period,
            "customer_number": self.customer_number,
            "org_number": self.org_number,
            "salon_name": self.salon_name,
            "brand": self.brand,
            "brand_id": self.brand_id,
            "product_group": self.product_group,
            "reported_value": self.reported_value,
            "delta_value": self.delta_value,
            "salon_id": self.salon_id,
            "match_status": self.match_status,
        }


class BonusCalculation(db.Model):
    """
    Materialized loyalty/return bonus per salon + supplier + period.

    salon_id NULL marks the aggregate of unmatched rows for the period
    (status "unmatched").

    STATUS: pending -> calculated -> approved -> paid. Approved and paid
    rows are frozen; re-running a calculation leaves them untouched.
    """
    __tablename__ = "bonus_calculations"
    __table_args__ = (
        db.UniqueConstraint("salon_id", "supplier_id", "period", name="uq_bonus_calculations_salon_supplier_period"),
        db.Index("ix_bonus_calculations_supplier_period", "supplier_id", "period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id", ondelete="CASCADE"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    period = db.Column(db.String(7), nullable=False)

    total_turnover = db.Column(db.Float, nullable=False, default=0.0)
    loyalty_bonus_amount = db.Column(db.Float, nullable=False, default=0.0)
    return_commission_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_bonus = db.Column(db.Float, nullable=False, default=0.0)

    applied_rule_ids = db.Column(db.JSON, nullable=False, default=list)
    calculation_details = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(db.String(16), nullable=False, default="pending")
    calculated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    calculated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    salon = db.relationship("Salon")
    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salon_id": self.salon_id,
            "salon_name": self.salon.name if self.salon else None,
            "supplier_id": self.supplier_id,
            "period": self.period,
            "total_turnover": self.total_turnover,
            "loyalty_bonus_amount": self.loyalty_bonus_amount,
            "return_commission_amount": self.return_commission_amount,
            "total_bonus": self.total_bonus,
            "applied_rule_ids": list(self.applied_rule_ids or []),
            "calculation_details": self.calculation_details or {},
            "status": self.status,
            "calculated_at": to_utc_z(self.calculated_at),
            "calculated_by_user_id": self.calculated_by_user_id,
        }


class BaselineOverride(db.Model):
    """
    Manual prior-year turnover for a salon + supplier + year.

    Replaces both the same-period and the full-year comparison values
    before the growth tier is decided.
    """
    __tablename__ = "bonus_baseline_overrides"
    __table_args__ = (
        db.UniqueConstraint("salon_id", "supplier_id", "year", name="uq_bonus_baseline_overrides"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id", ondelete="CASCADE"), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    override_turnover = db.Column(db.Float, nullable=False)
    note = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salon_id": self.salon_id,
            "supplier_id": self.supplier_id,
            "year": self.year,
            "override_turnover": self.override_turnover,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class CumulativeBaseline(db.Model):
    """
    Known year-to-date value for a salon at the end of `period`.

    Used as the previous-period total when converting the following
    period's cumulative report into a delta (e.g. when the prior report
    was never imported).
    """
    __tablename__ = "bonus_cumulative_baselines"
    __table_args__ = (
        db.UniqueConstraint("salon_id", "supplier_id", "period", name="uq_bonus_cumulative_baselines"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id", ondelete="CASCADE"), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    period = db.Column(db.String(7), nullable=False)
    cumulative_value = db.Column(db.Float, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salon_id": self.salon_id,
            "supplier_id": self.supplier_id,
            "period": self.period,
            "cumulative_value": self.cumulative_value,
        }
