from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z


class Supplier(db.Model):
    """
    Product supplier running bonus programs for partner salons.

    cumulative_reporting: the supplier reports running year-to-date
    turnover per period instead of per-period amounts. Sales imports for
    such suppliers are converted to period deltas before rules apply.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    org_number = db.Column(db.String(9), nullable=True, unique=True)
    contact_email = db.Column(db.String(255), nullable=True)

    cumulative_reporting = db.Column(db.Boolean, nullable=False, default=False)
    hubspot_company_id = db.Column(db.String(32), nullable=True, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "org_number": self.org_number,
            "contact_email": self.contact_email,
            "cumulative_reporting": self.cumulative_reporting,
            "hubspot_company_id": self.hubspot_company_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SupplierBrand(db.Model):
    """Brand sold by a supplier; bonus rules may target a single brand."""
    __tablename__ = "supplier_brands"
    __table_args__ = (
        db.UniqueConstraint("supplier_id", "name", name="uq_supplier_brands_supplier_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("brands", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "name": self.name,
            "is_active": self.is_active,
        }


class SupplierSalonLink(db.Model):
    """Many-to-many partner relation between suppliers and salons."""
    __tablename__ = "supplier_salon_links"
    __table_args__ = (
        db.UniqueConstraint("supplier_id", "salon_id", name="uq_supplier_salon_links"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("salon_links", lazy=True))
    salon = db.relationship("Salon", backref=db.backref("supplier_links", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "salon_id": self.salon_id,
            "salon_name": self.salon.name if self.salon else None,
            "created_at": to_utc_z(self.created_at),
        }
