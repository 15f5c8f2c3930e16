from __future__ import annotations

import logging

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from review_portal.models.user import User, UserRole
from review_portal.settings import get_settings

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int | None = None) -> str:
    rounds = rounds or get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        logger.warning("Stored password hash could not be parsed")
        return False


def authenticate(db: Session, employee_id: str, password: str) -> User | None:
    """
    Return the active user owning `employee_id` if `password` matches.

    Callers must not tell "unknown id" and "wrong password" apart.
    """

    user = db.scalars(
        select(User).where(User.employee_id == employee_id.strip(), User.is_active.is_(True))
    ).first()
    if user is None:
        logger.info("Login failed: unknown or inactive employee_id=%s", employee_id)
        return None
    if not verify_password(password, user.password_hash):
        logger.info("Login failed: bad password employee_id=%s", employee_id)
        return None
    return user


def ensure_default_admin(db: Session) -> User | None:
    """Create the bootstrap admin when no admin exists. Returns the new user, if any."""

    settings = get_settings()
    existing = db.scalars(select(User).where(User.role == UserRole.ADMIN).limit(1)).first()
    if existing is not None:
        logger.info("Admin user already exists employee_id=%s", existing.employee_id)
        return None

    admin = User(
        name="System Administrator",
        email=settings.admin_email.lower(),
        password_hash=hash_password(settings.admin_password),
        employee_id=settings.admin_employee_id,
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.add(admin)
    db.commit()
    logger.info("Default admin user created employee_id=%s", admin.employee_id)
    return admin
