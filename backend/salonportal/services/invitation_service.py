# Overview: Service-layer operations for invitations and onboarding; encapsulates business logic and database work.

"""
Invitation / Onboarding Token Flow

- An invitation holds a uuid4 token, an expiry and the role association
- The onboarding link is <PORTAL_BASE_URL>/onboarding?token=<token>
- The email is sent through the hosted send-invitation-email function;
  when sending fails the invitation is kept and `email_sent` is False so
  the admin can resend
- Acceptance is single use and re-checks the role association against
  the current database, so a stale invitation (e.g. its district was
  deleted) cannot create an inconsistent user
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from urllib.parse import urlencode

from flask import current_app

from ..extensions import db
from ..integrations import functions
from ..models import Invitation, User
from ..permissions import required_association
from ..validation import ConflictError, NotFoundError, ValidationError
from .auth_service import create_user, validate_role_association
from salonportal.time_utils import utcnow


logger = logging.getLogger(__name__)

STATUSES = ("pending", "expired", "accepted")


class InvitationError(ValueError):
    """Raised when a token cannot be used (unknown, expired or already accepted)."""


@dataclass
class InvitationResult:
    invitation: Invitation
    invitation_url: str
    email_sent: bool

    def to_dict(self) -> dict:
        data = self.invitation.to_dict()
        data["invitation_url"] = self.invitation_url
        data["email_sent"] = self.email_sent
        return data


def build_invitation_url(token: str) -> str:
    base = current_app.config["PORTAL_BASE_URL"].rstrip("/")
    return f"{base}/onboarding?{urlencode({'token': token})}"


def _ttl() -> timedelta:
    return timedelta(days=current_app.config.get("INVITATION_TTL_DAYS", 7))


def _send_email(invitation: Invitation) -> bool:
    """True only when the email function actually ran; a skipped call is not a send."""
    try:
        response = functions.invoke(functions.SEND_INVITATION_EMAIL, {
            "email": invitation.email,
            "role": invitation.role,
            "salonName": invitation.salon.name if invitation.salon else None,
            "districtName": invitation.district.name if invitation.district else None,
            "supplierName": invitation.supplier.name if invitation.supplier else None,
            "invitationUrl": build_invitation_url(invitation.token),
        })
    except functions.FunctionInvocationError:
        logger.warning("Invitation email to %s failed; invitation %s kept", invitation.email, invitation.id, exc_info=True)
        return False
    if response.get("skipped"):
        logger.info("Invitation email to %s not sent; hosted functions are disabled", invitation.email)
        return False
    return True


def create_invitation(
    email: str,
    role: str,
    *,
    salon_id: int | None = None,
    district_id: int | None = None,
    supplier_id: int | None = None,
    created_by: User | None = None,
    hubspot_contact_id: str | None = None,
    send_email: bool = True,
) -> InvitationResult:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")

    validate_role_association(role, salon_id=salon_id, district_id=district_id, supplier_id=supplier_id)

    if db.session.query(User).filter(db.func.lower(User.email) == email).first():
        raise ConflictError("A user with this email already exists")

    now = utcnow()
    pending = db.session.query(Invitation).filter(
        Invitation.email == email,
        Invitation.accepted.is_(False),
        Invitation.expires_at > now,
    ).first()
    if pending:
        raise ConflictError("A pending invitation already exists for this email")

    column = required_association(role)
    invitation = Invitation(
        email=email,
        role=role,
        token=str(uuid.uuid4()),
        expires_at=now + _ttl(),
        salon_id=salon_id if column == "salon_id" else None,
        district_id=district_id if column == "district_id" else None,
        supplier_id=supplier_id if column == "supplier_id" else None,
        created_by_user_id=created_by.id if created_by else None,
        hubspot_contact_id=hubspot_contact_id,
        accepted=False,
    )
    db.session.add(invitation)
    db.session.commit()

    logger.info("Invitation %s created for %s as %s", invitation.id, email, role)

    email_sent = _send_email(invitation) if send_email else False
    return InvitationResult(invitation, build_invitation_url(invitation.token), email_sent)


def get_invitation(invitation_id: int) -> Invitation:
    invitation = db.session.get(Invitation, invitation_id)
    if not invitation:
        raise NotFoundError("Invitation not found")
    return invitation


def get_invitation_by_token(token: str) -> Invitation:
    invitation = db.session.query(Invitation).filter_by(token=token).first()
    if not invitation:
        raise InvitationError("Invalid invitation token")
    return invitation


def list_invitations(*, status: str | None = None) -> list[Invitation]:
    if status is not None and status not in STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STATUSES)}")
    invitations = db.session.query(Invitation).order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()
    if status is None:
        return invitations
    return [inv for inv in invitations if inv.status == status]


def resend_invitation(invitation_id: int) -> InvitationResult:
    """Extend the expiry and send the email again; the token is kept."""
    invitation = get_invitation(invitation_id)
    if invitation.accepted:
        raise ValidationError("Invitation has already been accepted")

    invitation.expires_at = utcnow() + _ttl()
    db.session.commit()

    email_sent = _send_email(invitation)
    return InvitationResult(invitation, build_invitation_url(invitation.token), email_sent)


def delete_invitation(invitation_id: int) -> None:
    invitation = get_invitation(invitation_id)
    db.session.delete(invitation)
    db.session.commit()


def accept_invitation(token: str, *, password: str, name: str | None = None, phone: str | None = None) -> User:
    """
    Consume the token and create the user.

    Raises InvitationError for unknown, expired or accepted tokens and
    ValidationError when the invited association no longer holds.
    """
    invitation = get_invitation_by_token(token)
    if invitation.accepted:
        raise InvitationError("Invitation has already been accepted")
    if invitation.expires_at < utcnow():
        raise InvitationError("Invitation has expired")

    validate_role_association(
        invitation.role,
        salon_id=invitation.salon_id,
        district_id=invitation.district_id,
        supplier_id=invitation.supplier_id,
    )

    user = create_user(
        invitation.email,
        password,
        invitation.role,
        name=name,
        phone=phone,
        salon_id=invitation.salon_id,
        district_id=invitation.district_id,
        supplier_id=invitation.supplier_id,
        hubspot_contact_id=invitation.hubspot_contact_id,
        commit=False,
    )

    invitation.accepted = True
    invitation.accepted_at = utcnow()
    invitation.accepted_user_id = user.id
    db.session.commit()

    logger.info("Invitation %s accepted; user %s created", invitation.id, user.id)
    return user
