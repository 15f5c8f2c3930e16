from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from review_portal.models.user import User
from review_portal.security.config import SecurityConfig

logger = logging.getLogger(__name__)


def session_payload(user: User) -> dict[str, Any]:
    """What the login handler stores in the signed session cookie."""

    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "employee_id": user.employee_id,
        "department_id": user.department_id,
        "hod_level": user.hod_level.value if user.hod_level else None,
    }


def extract_user_id(request: Request, config: SecurityConfig) -> int | None:
    """
    Read the logged-in user id from the session cookie.

    Returns None when nobody is logged in; a tampered or malformed payload is
    treated the same way and cleared.
    """

    payload = request.session.get(config.auth.session_key)
    if not payload:
        logger.debug("No session user path=%s method=%s", request.url.path, request.method)
        return None

    try:
        return int(payload["id"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Malformed session payload path=%s method=%s", request.url.path, request.method)
        request.session.pop(config.auth.session_key, None)
        return None


def load_user(db: Session, user_id: int) -> User:
    user = db.execute(
        select(User).where(User.id == user_id).options(selectinload(User.department))
    ).scalar_one_or_none()

    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user")

    return user
