# Overview: Password hashing, user creation and credential checks.

"""
Authentication Service

Every mutating operation is attributed to a user, so there are no shared
logins. Passwords are bcrypt-hashed (cost factor 12); session tokens are
handled in session_service.py.
"""

import re

import bcrypt
from flask import current_app

from ..errors import AuthError, ValidationError
from ..extensions import db
from ..models import User, USER_ROLES
from ..time_utils import utcnow

INVALID_CREDENTIALS = "Invalid username or password"


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(username: str, password: str, name: str | None = None, role: str = "cashier") -> User:
    """
    Create a user with a bcrypt-hashed password.

    Raises ValidationError for a blank or taken username, an unknown role
    or a weak password.
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ValidationError("Username already exists")

    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    user = User(
        username=username,
        name=name,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User:
    """
    Verify credentials of an active user and record the login time.

    Unknown users, inactive users and bad passwords share one message.
    """
    if not username or not password:
        raise AuthError(INVALID_CREDENTIALS)

    user = db.session.query(User).filter_by(username=username.strip()).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthError(INVALID_CREDENTIALS)

    user.last_login_at = utcnow()
    db.session.commit()
    return user
