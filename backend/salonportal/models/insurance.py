from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z, utcnow


class PowerOfAttorney(db.Model):
    """
    Insurance power of attorney (fullmakt) signed with a one-time code.

    SIGNING:
    - A 6-digit code is sent to `email`; only its SHA-256 hash is stored
    - otp_attempts counts wrong codes; the document locks at the configured max
    - Signing records timestamp, IP and user agent as evidence

    previous_insurers is a list of {"company", "policy_number"} the
    salon authorizes us to cancel on its behalf.
    """
    __tablename__ = "insurance_power_of_attorney"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id", ondelete="SET NULL"), nullable=True, index=True)

    salon_name = db.Column(db.String(255), nullable=False)
    org_number = db.Column(db.String(9), nullable=False)
    contact_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    consent_transfer = db.Column(db.Boolean, nullable=False, default=False)
    consent_privacy = db.Column(db.Boolean, nullable=False, default=False)
    has_existing_insurance = db.Column(db.Boolean, nullable=False, default=False)
    previous_insurers = db.Column(db.JSON, nullable=False, default=list)

    otp_code_hash = db.Column(db.String(64), nullable=True)
    otp_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    otp_attempts = db.Column(db.Integer, nullable=False, default=0)

    signed = db.Column(db.Boolean, nullable=False, default=False, index=True)
    signed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    pdf_url = db.Column(db.String(512), nullable=True)
    admin_notified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def status(self) -> str:
        if self.signed:
            return "signed"
        if self.otp_expires_at is not None and self.otp_expires_at < utcnow():
            return "expired"
        return "pending"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "salon_id": self.salon_id,
            "salon_name": self.salon_name,
            "org_number": self.org_number,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "consent_transfer": self.consent_transfer,
            "consent_privacy": self.consent_privacy,
            "has_existing_insurance": self.has_existing_insurance,
            "previous_insurers": list(self.previous_insurers or []),
            "status": self.status,
            "otp_expires_at": to_utc_z(self.otp_expires_at),
            "otp_attempts": self.otp_attempts,
            "signed": self.signed,
            "signed_at": to_utc_z(self.signed_at),
            "ip_address": self.ip_address,
            "pdf_url": self.pdf_url,
            "admin_notified_at": to_utc_z(self.admin_notified_at),
            "created_at": to_utc_z(self.created_at),
        }


class InsuranceProduct(db.Model):
    """
    Insurance product offered to member salons.

    PRICING:
    - price_model "fast": base_price per year for the salon
    - "per_arsverk": base_price per full-time equivalent
    - "per_person": base_price per insured employee
      (requires_employee_selection marks products ordered per person)

    Tiers (e.g. Basis / Utvidet) carry their own price and a row per
    coverage type, which together form the coverage comparison table.
    """
    __tablename__ = "insurance_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    product_type = db.Column(db.String(32), nullable=False)  # salong, yrkesskade, cyber, reise, fritidsulykke, helse
    price_model = db.Column(db.String(16), nullable=False, default="fast")  # fast, per_arsverk, per_person
    base_price = db.Column(db.Float, nullable=False, default=0.0)
    requires_employee_selection = db.Column(db.Boolean, nullable=False, default=False)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    icon_name = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    tiers = db.relationship(
        "InsuranceProductTier",
        backref="product",
        cascade="all, delete-orphan",
        order_by="InsuranceProductTier.sort_order",
    )
    documents = db.relationship(
        "InsuranceProductDocument",
        backref="product",
        cascade="all, delete-orphan",
        order_by="InsuranceProductDocument.id",
    )

    def to_dict(self, include_tiers: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "product_type": self.product_type,
            "price_model": self.price_model,
            "base_price": self.base_price,
            "requires_employee_selection": self.requires_employee_selection,
            "active": self.active,
            "sort_order": self.sort_order,
            "icon_name": self.icon_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_tiers:
            data["tiers"] = [t.to_dict() for t in self.tiers]
        return data


class InsuranceProductTier(db.Model):
    """Priced coverage level of a product."""
    __tablename__ = "insurance_product_tiers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("insurance_products.id", ondelete="CASCADE"), nullable=False, index=True)
    tier_name = db.Column(db.String(120), nullable=False)
    tier_description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Float, nullable=False, default=0.0)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    coverage = db.relationship(
        "InsuranceCoverageDetail",
        backref="tier",
        cascade="all, delete-orphan",
        order_by="InsuranceCoverageDetail.sort_order",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "tier_name": self.tier_name,
            "tier_description": self.tier_description,
            "price": self.price,
            "sort_order": self.sort_order,
        }


class InsuranceCoverageDetail(db.Model):
    """
    One cell of the coverage table: what `tier` covers for `coverage_type`.

    Every tier of a product holds one row per coverage type; "-" marks
    "not covered".
    """
    __tablename__ = "insurance_coverage_details"
    __table_args__ = (
        db.UniqueConstraint("tier_id", "coverage_type", name="uq_insurance_coverage_tier_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tier_id = db.Column(db.Integer, db.ForeignKey("insurance_product_tiers.id", ondelete="CASCADE"), nullable=False, index=True)
    coverage_type = db.Column(db.String(120), nullable=False)
    coverage_value = db.Column(db.String(255), nullable=False, default="-")
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tier_id": self.tier_id,
            "coverage_type": self.coverage_type,
            "coverage_value": self.coverage_value,
            "sort_order": self.sort_order,
        }


class InsuranceProductDocument(db.Model):
    """Terms, product sheet or similar attached to a product, optionally to one tier."""
    __tablename__ = "insurance_product_documents"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("insurance_products.id", ondelete="CASCADE"), nullable=False, index=True)
    tier_id = db.Column(db.Integer, db.ForeignKey("insurance_product_tiers.id", ondelete="CASCADE"), nullable=True)
    document_type = db.Column(db.String(32), nullable=False, default="vilkar")
    title = db.Column(db.String(255), nullable=False)
    file_url = db.Column(db.String(512), nullable=False)
    version = db.Column(db.String(32), nullable=True)
    uploaded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "tier_id": self.tier_id,
            "document_type": self.document_type,
            "title": self.title,
            "file_url": self.file_url,
            "version": self.version,
            "uploaded_by_user_id": self.uploaded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
