# Overview: Service-layer operations for accounts and roles.

"""
Account service

Passwords are hashed with bcrypt; the cost factor comes from the
BCRYPT_ROUNDS config value so tests can run with a cheap cost.

Role checks used by every privileged service operation live here:
services call require_admin() before touching any row, so an unauthorized
caller never causes a state change.
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.users import USER_ROLES
from ..errors import Forbidden, UserNotFound, ValidationError, Conflict
from ..time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash (e.g. placeholder on an imported account)
        return False


def create_user(
    email: str,
    password: str,
    role: str = "user",
    company_name: str | None = None,
    phone_number: str | None = None,
    address: str | None = None,
    business_number: str | None = None,
) -> User:
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("email required")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    if db.session.query(User).filter_by(email=email).first():
        raise Conflict(f"User with email {email} already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        role=role,
        company_name=company_name,
        phone_number=phone_number,
        address=address,
        business_number=business_number,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """Return the active user for the credentials, or None."""
    user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFound(user_id)
    return user


def require_admin(user_id: int | None) -> User:
    """Raise Forbidden unless user_id names an active admin."""
    if not user_id:
        raise Forbidden("Administrator privileges required")
    user = db.session.get(User, user_id)
    if not user or not user.is_active or not user.is_admin:
        raise Forbidden("Administrator privileges required")
    return user
