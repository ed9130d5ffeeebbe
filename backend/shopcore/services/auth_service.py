"""
Authentication Service

WHY: Every manual order and stock adjustment must be attributable. Uses
bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..errors import InvalidInputError
from ..models import User, OrganizationMember, PlatformAdmin
from ..models.auth import ORG_ROLES
from ..time_utils import utcnow


class PasswordValidationError(InvalidInputError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long", field="password")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter", field="password")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter", field="password")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit", field="password")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character", field="password")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(email: str, password: str, name: str | None = None, *, rounds: int = 12) -> User:
    """
    Create a user with a bcrypt password hash.

    Email is globally unique (case-insensitive).
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise InvalidInputError("A valid email is required", field="email")

    if db.session.query(User).filter_by(email=email).first():
        raise InvalidInputError(f"User with email {email} already exists", field="email")

    user = User(
        email=email,
        name=(name or "").strip() or None,
        password_hash=hash_password(password, rounds=rounds),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns the User and stamps last_login_at on success, None otherwise.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter_by(email=email, is_active=True).first()
    if not user or not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def add_member(user_id: int, org_id: int, role: str) -> OrganizationMember:
    """Grant (or change) a user's role in an organization."""
    if role not in ORG_ROLES:
        raise InvalidInputError(f"role must be one of: {', '.join(ORG_ROLES)}", field="role")

    member = db.session.query(OrganizationMember).filter_by(user_id=user_id, org_id=org_id).first()
    if member:
        member.role = role
    else:
        member = OrganizationMember(user_id=user_id, org_id=org_id, role=role)
        db.session.add(member)
    db.session.commit()
    return member


def grant_platform_admin(user_id: int, granted_by_user_id: int | None = None) -> PlatformAdmin:
    grant = db.session.query(PlatformAdmin).filter_by(user_id=user_id).first()
    if grant:
        return grant
    grant = PlatformAdmin(user_id=user_id, granted_by_user_id=granted_by_user_id)
    db.session.add(grant)
    db.session.commit()
    return grant
