from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z


class Chain(db.Model):
    """
    Optional grouping of salons under common ownership.

    DESIGN:
    - A salon belongs to at most one chain (Salon.chain_id)
    - Removing a salon from a chain nulls the FK; salons are never cascaded
    """
    __tablename__ = "chains"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    org_number = db.Column(db.String(9), nullable=True, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Chain id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "org_number": self.org_number,
            "salon_count": len(self.salons),
            "created_at": to_utc_z(self.created_at),
        }


class District(db.Model):
    """Geographic grouping of salons, managed by one or more district managers."""
    __tablename__ = "districts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<District id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Salon(db.Model):
    """
    A single hairdressing location: the base tenant unit.

    MULTI-TENANT: Employees, salon-role users, bonus calculations and
    fullmakter hang off salon_id. Chain and district are soft groupings;
    deleting either only clears the FK here.

    org_number is the nine-digit Norwegian organisation number used to
    match supplier-reported sales rows; member_number is the chain's
    customer/member number some suppliers report instead.
    """
    __tablename__ = "salons"
    __table_args__ = (
        db.Index("ix_salons_district", "district_id"),
        db.Index("ix_salons_chain", "chain_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    chain_id = db.Column(db.Integer, db.ForeignKey("chains.id"), nullable=True)
    district_id = db.Column(db.Integer, db.ForeignKey("districts.id"), nullable=True)

    org_number = db.Column(db.String(9), nullable=True, unique=True)
    member_number = db.Column(db.String(32), nullable=True, unique=True)

    address = db.Column(db.String(255), nullable=True)
    postal_code = db.Column(db.String(8), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    hubspot_company_id = db.Column(db.String(32), nullable=True, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    chain = db.relationship("Chain", backref=db.backref("salons", lazy=True))
    district = db.relationship("District", backref=db.backref("salons", lazy=True))

    def __repr__(self) -> str:
        return f"<Salon id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "chain_id": self.chain_id,
            "chain_name": self.chain.name if self.chain else None,
            "district_id": self.district_id,
            "district_name": self.district.name if self.district else None,
            "org_number": self.org_number,
            "member_number": self.member_number,
            "address": self.address,
            "postal_code": self.postal_code,
            "city": self.city,
            "email": self.email,
            "phone": self.phone,
            "hubspot_company_id": self.hubspot_company_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
