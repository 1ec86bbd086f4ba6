# Overview: Service-layer operations for the HubSpot CRM integration; encapsulates business logic and database work.

"""
HubSpot Integration

CONNECTION: one portal-wide OAuth connection (EU endpoint). Tokens are
refreshed automatically when they are about to expire; owners lookups
also refresh after an unexpected 401.

IMPORT:
- Companies with samarbeidspartnerleverandr set become Suppliers,
  everything else becomes a Salon. Matching is by hubspot_company_id,
  then org number (orgnr or organisasjonsnummer).
- The company's HubSpot owner decides the salon's district through
  HubSpotOwnerDistrictMapping.
- Contacts are invited with a role derived from their stilling or
  leverandrrolle properties.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from urllib.parse import urlencode

from flask import current_app

from ..extensions import db
from ..integrations import hubspot
from ..models import (
    District,
    HubSpotConnection,
    HubSpotOwnerDistrictMapping,
    Invitation,
    Salon,
    Supplier,
    User,
)
from ..permissions import required_association
from ..permissions.roles import SUPPLIER_ADMIN, SUPPLIER_BUSINESS_DEV, SUPPLIER_SALES
from ..validation import NotFoundError, ValidationError, normalize_org_number
from salonportal.time_utils import utcnow
from .invitation_service import create_invitation


logger = logging.getLogger(__name__)

# Refresh this long before HubSpot's stated expiry
REFRESH_MARGIN = timedelta(minutes=5)

TRUTHY = ("true", "ja", "yes", "1")

# (keywords, role) checked in order; "kjede eier" must win over plain "eier"
POSITION_ROLE_PRIORITY = [
    (("kjede eier", "kjedeeier", "chain owner"), "chain_owner"),
    (("daglig leder", "ceo", "managing director"), "daglig_leder"),
    (("avdelingsleder", "department manager", "team lead"), "avdelingsleder"),
    (("styreleder", "chairman", "board"), "styreleder"),
    (("eier", "owner", "innehaver"), "salon_owner"),
    (("lærling", "apprentice", "trainee"), "apprentice"),
    (("frisør", "stylist", "hairdresser"), "stylist"),
]

SUPPLIER_ROLE_PRIORITY = [
    (("admin", "administrator", "leder"), SUPPLIER_ADMIN),
    (("salg", "sales", "selger"), SUPPLIER_SALES),
    (("forretning", "business", "utvikling", "dev"), SUPPLIER_BUSINESS_DEV),
]


class HubSpotNotConnected(ValueError):
    """Raised when a CRM call is made before the portal is connected."""


# -- Mapping --

def _first_match(text: str, priority: list) -> str | None:
    lowered = text.lower()
    for keywords, role in priority:
        if any(keyword in lowered for keyword in keywords):
            return role
    return None


def map_supplier_role(leverandrrolle: str | None) -> str | None:
    """Supplier role for a contact, or None when the property is empty or unrecognised."""
    if not leverandrrolle:
        return None
    return _first_match(leverandrrolle, SUPPLIER_ROLE_PRIORITY)


def map_position_to_role(stilling: str | None, leverandrrolle: str | None = None) -> str:
    """Portal role for a salon contact; a supplier role takes precedence."""
    supplier_role = map_supplier_role(leverandrrolle)
    if supplier_role:
        return supplier_role
    if not stilling:
        return "stylist"
    return _first_match(stilling, POSITION_ROLE_PRIORITY) or "stylist"


def company_org_number(properties: dict) -> str | None:
    raw = properties.get("orgnr") or properties.get("organisasjonsnummer")
    try:
        return normalize_org_number(raw)
    except ValidationError:
        logger.warning("Ignoring malformed org number from HubSpot: %r", raw)
        return None


def is_supplier_company(properties: dict) -> bool:
    value = properties.get("samarbeidspartnerleverandr")
    return str(value or "").strip().lower() in TRUTHY


# -- Connection --

def build_authorize_url(state: str) -> str:
    config = current_app.config
    if not config.get("HUBSPOT_CLIENT_ID"):
        raise ValidationError("HubSpot is not configured")
    query = urlencode({
        "client_id": config["HUBSPOT_CLIENT_ID"],
        "redirect_uri": config.get("HUBSPOT_REDIRECT_URI", ""),
        "scope": hubspot.SCOPES,
        "state": state,
    })
    return f"{config['HUBSPOT_AUTHORIZE_URL']}?{query}"


def _token_kwargs() -> dict:
    config = current_app.config
    return {
        "base_url": config["HUBSPOT_API_BASE_URL"],
        "client_id": config.get("HUBSPOT_CLIENT_ID", ""),
        "client_secret": config.get("HUBSPOT_CLIENT_SECRET", ""),
        "transport": config.get("HUBSPOT_TRANSPORT"),
    }


def get_connection() -> HubSpotConnection | None:
    return db.session.query(HubSpotConnection).order_by(HubSpotConnection.id.desc()).first()


def exchange_code(code: str, *, connected_by: User | None = None) -> HubSpotConnection:
    """Complete the OAuth flow and store the portal's single connection."""
    if not code:
        raise ValidationError("Authorization code is required")

    tokens = hubspot.exchange_token(
        redirect_uri=current_app.config.get("HUBSPOT_REDIRECT_URI", ""),
        code=code,
        **_token_kwargs(),
    )
    info = hubspot.get_token_info(
        base_url=current_app.config["HUBSPOT_API_BASE_URL"],
        access_token=tokens["access_token"],
        transport=current_app.config.get("HUBSPOT_TRANSPORT"),
    )

    db.session.query(HubSpotConnection).delete(synchronize_session=False)
    connection = HubSpotConnection(
        hub_id=str(info.get("hub_id")) if info.get("hub_id") is not None else None,
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
        expires_at=utcnow() + timedelta(seconds=int(tokens.get("expires_in", 1800))),
        connected_by_user_id=connected_by.id if connected_by else None,
    )
    db.session.add(connection)
    db.session.commit()
    logger.info("HubSpot connected (hub %s)", connection.hub_id)
    return connection


def connection_status() -> dict:
    connection = get_connection()
    if connection is None:
        return {"connected": False}
    return {
        "connected": True,
        "hub_id": connection.hub_id,
        "expires_at": connection.to_dict()["expires_at"],
        "expired": connection.expires_at <= utcnow(),
    }


def disconnect() -> bool:
    deleted = db.session.query(HubSpotConnection).delete(synchronize_session=False)
    db.session.commit()
    if deleted:
        logger.info("HubSpot disconnected")
    return bool(deleted)


def refresh_access_token(connection: HubSpotConnection) -> str:
    tokens = hubspot.exchange_token(refresh_token=connection.refresh_token, **_token_kwargs())
    connection.access_token = tokens["access_token"]
    connection.refresh_token = tokens.get("refresh_token", connection.refresh_token)
    connection.expires_at = utcnow() + timedelta(seconds=int(tokens.get("expires_in", 1800)))
    db.session.commit()
    logger.info("HubSpot access token refreshed")
    return connection.access_token


def get_client() -> hubspot.HubSpotClient:
    connection = get_connection()
    if connection is None:
        raise HubSpotNotConnected("HubSpot is not connected")

    if connection.expires_at <= utcnow() + REFRESH_MARGIN:
        refresh_access_token(connection)

    return hubspot.HubSpotClient(
        base_url=current_app.config["HUBSPOT_API_BASE_URL"],
        access_token=connection.access_token,
        on_unauthorized=lambda: refresh_access_token(connection),
        transport=current_app.config.get("HUBSPOT_TRANSPORT"),
        retry_delay=current_app.config.get("HUBSPOT_RETRY_DELAY", 1.0),
    )


# -- CRM reads --

def search_companies(query: str) -> list[dict]:
    with get_client() as client:
        return client.search_companies(query)


def get_company_contacts(company_id: str) -> list[dict]:
    with get_client() as client:
        contacts = client.get_company_contacts(company_id)
    for contact in contacts:
        props = contact.get("properties") or {}
        contact["suggested_role"] = map_position_to_role(props.get("stilling"), props.get("leverandrrolle"))
    return contacts


def get_subscription_types() -> list[dict]:
    with get_client() as client:
        return client.get_subscription_types()


# -- Owners / districts --

def sync_owners() -> list[HubSpotOwnerDistrictMapping]:
    """Upsert one mapping row per HubSpot owner; district links are kept."""
    with get_client() as client:
        owners = client.get_owners()

    existing = {m.hubspot_owner_id: m for m in db.session.query(HubSpotOwnerDistrictMapping).all()}
    for owner in owners:
        owner_id = str(owner.get("id"))
        name = " ".join(part for part in (owner.get("firstName"), owner.get("lastName")) if part) or None
        mapping = existing.get(owner_id)
        if mapping is None:
            mapping = HubSpotOwnerDistrictMapping(hubspot_owner_id=owner_id)
            db.session.add(mapping)
            existing[owner_id] = mapping
        mapping.email = owner.get("email")
        mapping.name = name
    db.session.commit()
    logger.info("Synced %d HubSpot owners", len(owners))
    return list_owner_mappings()


def list_owner_mappings() -> list[HubSpotOwnerDistrictMapping]:
    return db.session.query(HubSpotOwnerDistrictMapping).order_by(HubSpotOwnerDistrictMapping.name.asc()).all()


def set_owner_district(mapping_id: int, district_id: int | None) -> HubSpotOwnerDistrictMapping:
    mapping = db.session.get(HubSpotOwnerDistrictMapping, mapping_id)
    if not mapping:
        raise NotFoundError("Owner mapping not found")
    if district_id is not None and db.session.get(District, district_id) is None:
        raise NotFoundError("District not found")
    mapping.district_id = district_id
    db.session.commit()
    return mapping


def district_for_owner(owner_id: str | None) -> int | None:
    if not owner_id:
        return None
    mapping = db.session.query(HubSpotOwnerDistrictMapping).filter_by(hubspot_owner_id=str(owner_id)).first()
    return mapping.district_id if mapping else None


# -- Company import --

@dataclass
class CompanyImport:
    kind: str  # "salon" or "supplier"
    record: Salon | Supplier
    created: bool
    invited: list[Invitation] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "created": self.created,
            self.kind: self.record.to_dict(),
            "invited": [invitation.to_dict() for invitation in self.invited],
            "skipped": self.skipped,
        }


def _find_existing(model, company_id: str, org_number: str | None):
    record = db.session.query(model).filter_by(hubspot_company_id=company_id).first()
    if record is None and org_number:
        record = db.session.query(model).filter_by(org_number=org_number).first()
    return record


def import_company(company_id: str) -> CompanyImport:
    """Create or update the Salon / Supplier for a HubSpot company."""
    with get_client() as client:
        company = client.get_company(company_id)
    props = company.get("properties") or {}
    name = (props.get("name") or "").strip()
    if not name:
        raise ValidationError("HubSpot company has no name")
    org_number = company_org_number(props)
    company_id = str(company.get("id") or company_id)

    if is_supplier_company(props):
        supplier = _find_existing(Supplier, company_id, org_number)
        created = supplier is None
        if created:
            supplier = Supplier(name=name, is_active=True)
            db.session.add(supplier)
        supplier.hubspot_company_id = company_id
        if org_number:
            supplier.org_number = org_number
        db.session.commit()
        logger.info("Imported HubSpot company %s as supplier %s", company_id, supplier.id)
        return CompanyImport(kind="supplier", record=supplier, created=created)

    salon = _find_existing(Salon, company_id, org_number)
    created = salon is None
    if created:
        salon = Salon(name=name, is_active=True)
        db.session.add(salon)
    salon.hubspot_company_id = company_id
    if org_number:
        salon.org_number = org_number
    for prop, column in (("address", "address"), ("zip", "postal_code"), ("city", "city"), ("phone", "phone")):
        if props.get(prop):
            setattr(salon, column, props[prop])
    district_id = district_for_owner(props.get("hubspot_owner_id"))
    if district_id is not None:
        salon.district_id = district_id
    db.session.commit()
    logger.info("Imported HubSpot company %s as salon %s", company_id, salon.id)
    return CompanyImport(kind="salon", record=salon, created=created)


def invite_contacts(company_id: str, *, created_by: User | None = None) -> CompanyImport:
    """
    Import the company and invite its contacts with mapped roles.

    Contacts without an email, or that already have a user or a pending
    invitation, are reported under `skipped`.
    """
    result = import_company(company_id)
    contacts = get_company_contacts(company_id)

    for contact in contacts:
        props = contact.get("properties") or {}
        email = (props.get("email") or "").strip().lower()
        if not email:
            result.skipped.append({"contact_id": contact.get("id"), "reason": "missing email"})
            continue

        if result.kind == "supplier":
            role = map_supplier_role(props.get("leverandrrolle")) or SUPPLIER_SALES
        else:
            role = contact["suggested_role"]

        association = {"salon_id": None, "district_id": None, "supplier_id": None}
        column = required_association(role)
        if column == "supplier_id" and result.kind == "supplier":
            association["supplier_id"] = result.record.id
        elif column == "salon_id" and result.kind == "salon":
            association["salon_id"] = result.record.id
        elif column is not None:
            result.skipped.append({"email": email, "reason": f"role {role} does not fit a {result.kind}"})
            continue

        try:
            invitation = create_invitation(
                email,
                role,
                created_by=created_by,
                hubspot_contact_id=str(contact.get("id")) if contact.get("id") else None,
                **association,
            )
        except ValueError as exc:
            result.skipped.append({"email": email, "reason": str(exc)})
            continue
        result.invited.append(invitation.invitation)

    logger.info(
        "HubSpot company %s: %d contacts invited, %d skipped",
        company_id, len(result.invited), len(result.skipped),
    )
    return result
