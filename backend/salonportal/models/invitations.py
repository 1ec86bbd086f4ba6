from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z, utcnow


class Invitation(db.Model):
    """
    Onboarding invitation carrying a single-use opaque token.

    LIFECYCLE:
    - pending:  not accepted, expires_at in the future
    - expired:  not accepted, expires_at passed (resend extends it)
    - accepted: token consumed, user created

    The role association (salon/district/supplier) is captured here and
    copied onto the user at acceptance.
    """
    __tablename__ = "invitations"
    __table_args__ = (
        db.Index("ix_invitations_email", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False)

    token = db.Column(db.String(36), nullable=False, unique=True, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    salon_id = db.Column(db.Integer, db.ForeignKey("salons.id", ondelete="SET NULL"), nullable=True)
    district_id = db.Column(db.Integer, db.ForeignKey("districts.id", ondelete="SET NULL"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)

    accepted = db.Column(db.Boolean, nullable=False, default=False)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    accepted_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    hubspot_contact_id = db.Column(db.String(32), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    salon = db.relationship("Salon")
    district = db.relationship("District")
    supplier = db.relationship("Supplier")

    @property
    def status(self) -> str:
        if self.accepted:
            return "accepted"
        if self.expires_at < utcnow():
            return "expired"
        return "pending"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "salon_id": self.salon_id,
            "salon_name": self.salon.name if self.salon else None,
            "district_id": self.district_id,
            "district_name": self.district.name if self.district else None,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "accepted": self.accepted,
            "accepted_at": to_utc_z(self.accepted_at),
            "expires_at": to_utc_z(self.expires_at),
            "hubspot_contact_id": self.hubspot_contact_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
