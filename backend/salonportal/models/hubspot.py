from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z


class HubSpotConnection(db.Model):
    """
    OAuth tokens for the portal's single HubSpot account.

    Only one active row is kept; disconnect deletes it.
    """
    __tablename__ = "hubspot_connections"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    hub_id = db.Column(db.String(32), nullable=True)
    access_token = db.Column(db.Text, nullable=False)
    refresh_token = db.Column(db.Text, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    connected_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        # Tokens never leave the server
        return {
            "id": self.id,
            "hub_id": self.hub_id,
            "expires_at": to_utc_z(self.expires_at),
            "connected_by_user_id": self.connected_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class HubSpotOwnerDistrictMapping(db.Model):
    """HubSpot owner (account manager) mapped to a portal district."""
    __tablename__ = "hubspot_owner_district_mapping"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    hubspot_owner_id = db.Column(db.String(32), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(255), nullable=True)
    district_id = db.Column(db.Integer, db.ForeignKey("districts.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    district = db.relationship("District")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hubspot_owner_id": self.hubspot_owner_id,
            "email": self.email,
            "name": self.name,
            "district_id": self.district_id,
            "district_name": self.district.name if self.district else None,
        }
