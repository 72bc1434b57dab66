# Overview: Staff accounts: bcrypt password hashing, user creation and credential checks.

"""
SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper + lower case and a digit required
- Session tokens managed separately (see session_service.py)
- Users of a deactivated business cannot log in
"""

import re

import bcrypt

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import Business, User
from ..time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    business_id: int | None = None,
) -> User:
    """
    Create a staff user with a bcrypt password hash.

    Raises PasswordValidationError for weak passwords and ConflictError for a
    taken username.
    """
    username = (username or "").strip()
    email = (email or "").strip()
    if not username or not email:
        raise ValidationError("username and email are required")

    if business_id is not None and db.session.get(Business, business_id) is None:
        raise ValidationError(f"Business {business_id} not found")

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError(f"Username '{username}' already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        business_id=business_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Return the user if credentials are valid and the account (and its business) is active.
    """
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None
    if user.business is not None and not user.business.is_active:
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
