# Overview: Service-layer operations for insurance power of attorney (fullmakt); encapsulates business logic and database work.

"""
Power of Attorney Signing

FLOW:
1. A salon fills in the public form -> create_power_of_attorney()
2. issue_otp() emails a 6-digit code (send-poa-otp); the hash is stored
3. verify_and_sign() compares the code and records signing evidence

SECURITY:
- Codes are generated with `secrets` and stored as SHA-256 hashes only
- Comparison is constant time (hmac.compare_digest)
- Wrong codes count towards POA_OTP_MAX_ATTEMPTS; at the limit the
  document is locked until a new code is issued
- Issuing a new code resets the attempt counter and replaces the old code
"""

from __future__ import annotations

import csv
import hashlib
import hmac
import io
import logging
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..integrations import functions
from ..models import PowerOfAttorney, Salon
from ..validation import NotFoundError, ValidationError, normalize_org_number
from salonportal.time_utils import format_norwegian, utcnow


logger = logging.getLogger(__name__)

STATUSES = ("pending", "expired", "signed")

CSV_HEADERS = ["Salongnavn", "Org.nr", "Kontaktperson", "E-post", "Telefon", "Status", "Signert dato", "Opprettet"]

STATUS_LABELS = {
    "signed": "Signert",
    "pending": "Venter",
    "expired": "Utløpt",
}


class OtpError(ValueError):
    """Raised when a code cannot be used to sign."""


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def _generate_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def _clean_insurers(value) -> list[dict]:
    if value in (None, ""):
        return []
    if not isinstance(value, list):
        raise ValidationError("previous_insurers must be a list")
    cleaned = []
    for item in value:
        if not isinstance(item, dict):
            raise ValidationError("Each previous insurer must be an object")
        company = (item.get("company") or "").strip()
        if not company:
            raise ValidationError("Each previous insurer needs a company")
        cleaned.append({"company": company, "policy_number": (item.get("policy_number") or "").strip() or None})
    return cleaned


def create_power_of_attorney(payload: dict) -> PowerOfAttorney:
    """Register a filled-in form. Consents are mandatory."""
    required = {
        "salon_name": "Salon name",
        "org_number": "Organization number",
        "contact_name": "Contact person",
        "email": "Email",
    }
    for key, label in required.items():
        if not str(payload.get(key) or "").strip():
            raise ValidationError(f"{label} is required")

    email = payload["email"].strip().lower()
    if "@" not in email:
        raise ValidationError("Email is invalid")

    if payload.get("consent_transfer") is not True or payload.get("consent_privacy") is not True:
        raise ValidationError("Both consents must be given")

    has_existing = bool(payload.get("has_existing_insurance"))
    insurers = _clean_insurers(payload.get("previous_insurers"))
    if has_existing and not insurers:
        raise ValidationError("List at least one previous insurer")

    org_number = normalize_org_number(str(payload["org_number"]))
    salon = db.session.query(Salon).filter_by(org_number=org_number).first()

    poa = PowerOfAttorney(
        salon_id=salon.id if salon else None,
        salon_name=payload["salon_name"].strip(),
        org_number=org_number,
        contact_name=payload["contact_name"].strip(),
        email=email,
        phone=(payload.get("phone") or "").strip() or None,
        consent_transfer=True,
        consent_privacy=True,
        has_existing_insurance=has_existing,
        previous_insurers=insurers if has_existing else [],
    )
    db.session.add(poa)
    db.session.commit()
    logger.info("Power of attorney %s created for org %s", poa.id, org_number)
    return poa


def get_power_of_attorney(poa_id: int) -> PowerOfAttorney:
    poa = db.session.get(PowerOfAttorney, poa_id)
    if not poa:
        raise NotFoundError("Power of attorney not found")
    return poa


def issue_otp(poa_id: int) -> PowerOfAttorney:
    """Generate, store and email a fresh one-time code."""
    poa = get_power_of_attorney(poa_id)
    if poa.signed:
        raise OtpError("Already signed")

    code = _generate_code()
    poa.otp_code_hash = _hash_code(code)
    poa.otp_expires_at = utcnow() + timedelta(minutes=current_app.config.get("POA_OTP_TTL_MINUTES", 15))
    poa.otp_attempts = 0
    db.session.commit()

    functions.invoke(functions.SEND_POA_OTP, {"poaId": poa.id, "email": poa.email, "code": code})
    logger.info("Signing code issued for power of attorney %s", poa.id)
    return poa


def verify_and_sign(poa_id: int, code: str, *, ip_address: str | None = None, user_agent: str | None = None) -> PowerOfAttorney:
    poa = get_power_of_attorney(poa_id)
    if poa.signed:
        raise OtpError("Already signed")
    if not poa.otp_code_hash or poa.otp_expires_at is None:
        raise OtpError("No code has been issued")
    if poa.otp_expires_at < utcnow():
        raise OtpError("Code has expired")

    max_attempts = current_app.config.get("POA_OTP_MAX_ATTEMPTS", 5)
    if (poa.otp_attempts or 0) >= max_attempts:
        raise OtpError("Too many attempts; request a new code")

    if not hmac.compare_digest(poa.otp_code_hash, _hash_code((code or "").strip())):
        poa.otp_attempts = (poa.otp_attempts or 0) + 1
        db.session.commit()
        logger.warning("Wrong signing code for power of attorney %s (attempt %s)", poa.id, poa.otp_attempts)
        raise OtpError("Invalid code")

    poa.signed = True
    poa.signed_at = utcnow()
    poa.ip_address = ip_address
    poa.user_agent = (user_agent or "")[:512] or None
    poa.otp_code_hash = None
    db.session.commit()
    logger.info("Power of attorney %s signed", poa.id)
    return poa


def list_powers_of_attorney(*, status: str | None = None, search: str | None = None) -> list[PowerOfAttorney]:
    query = db.session.query(PowerOfAttorney)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            PowerOfAttorney.salon_name.ilike(like),
            PowerOfAttorney.org_number.ilike(like),
            PowerOfAttorney.contact_name.ilike(like),
            PowerOfAttorney.email.ilike(like),
        ))
    rows = query.order_by(PowerOfAttorney.created_at.desc(), PowerOfAttorney.id.desc()).all()
    if status:
        if status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
        # status is derived from signed + expiry, so filter after loading
        rows = [row for row in rows if row.status == status]
    return rows


def stats() -> dict:
    rows = list_powers_of_attorney()
    counts = {status: 0 for status in STATUSES}
    for row in rows:
        counts[row.status] += 1
    return {"total": len(rows), **counts}


def mark_admin_notified(poa_id: int) -> PowerOfAttorney:
    poa = get_power_of_attorney(poa_id)
    poa.admin_notified_at = utcnow()
    db.session.commit()
    return poa


def export_filename() -> str:
    return f"fullmakter_{utcnow().date().isoformat()}.csv"


def export_csv(rows: list[PowerOfAttorney] | None = None) -> bytes:
    """Semicolon separated, UTF-8 with BOM so spreadsheet apps pick the encoding."""
    if rows is None:
        rows = list_powers_of_attorney()

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\r\n")
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow([
            row.salon_name,
            row.org_number,
            row.contact_name,
            row.email,
            row.phone or "",
            STATUS_LABELS[row.status],
            format_norwegian(row.signed_at),
            format_norwegian(row.created_at),
        ])
    return buffer.getvalue().encode("utf-8-sig")
