# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

ROLE-SCOPED USERS: A user's role decides which association must be set
(district_id, salon_id or supplier_id). Creation validates that the
association is present and that the referenced row exists.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, Salon, District, Supplier
from ..permissions import ALL_ROLES, required_association
from ..validation import ValidationError, ConflictError
from salonportal.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


_ASSOCIATION_MODELS = {
    "salon_id": (Salon, "Salon"),
    "district_id": (District, "District"),
    "supplier_id": (Supplier, "Supplier"),
}


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Validates password strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def validate_role_association(
    role: str,
    *,
    salon_id: int | None = None,
    district_id: int | None = None,
    supplier_id: int | None = None,
) -> None:
    """
    Check that `role` is known and carries the association it requires.

    The referenced salon/district/supplier must exist. Raises
    ValidationError with a message fit for the user.
    """
    if role not in ALL_ROLES:
        raise ValidationError(f"Unknown role: {role}")

    column = required_association(role)
    if column is None:
        return

    values = {"salon_id": salon_id, "district_id": district_id, "supplier_id": supplier_id}
    value = values[column]
    model, label = _ASSOCIATION_MODELS[column]
    if value is None:
        raise ValidationError(f"Role {role} requires {column}")
    if db.session.get(model, value) is None:
        raise ValidationError(f"{label} {value} not found")


def create_user(
    email: str,
    password: str,
    role: str,
    *,
    name: str | None = None,
    phone: str | None = None,
    salon_id: int | None = None,
    district_id: int | None = None,
    supplier_id: int | None = None,
    hubspot_contact_id: str | None = None,
    commit: bool = True,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Email is the login identifier and is unique (case-insensitive).
    Only the association the role requires is stored; others are dropped.

    Raises:
        ValidationError: unknown role or missing/invalid association
        ConflictError: email already registered
        PasswordValidationError: password doesn't meet requirements
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")

    validate_role_association(role, salon_id=salon_id, district_id=district_id, supplier_id=supplier_id)

    existing = db.session.query(User).filter(db.func.lower(User.email) == email).first()
    if existing:
        raise ConflictError("A user with this email already exists")

    password_hash = hash_password(password)

    column = required_association(role)
    user = User(
        email=email,
        name=name,
        phone=phone,
        password_hash=password_hash,
        role=role,
        salon_id=salon_id if column == "salon_id" else None,
        district_id=district_id if column == "district_id" else None,
        supplier_id=supplier_id if column == "supplier_id" else None,
        hubspot_contact_id=hubspot_contact_id,
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(
        db.func.lower(User.email) == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def change_password(user_id: int, current_password: str, new_password: str) -> None:
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()
