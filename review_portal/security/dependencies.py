from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from review_portal.db.session import get_db
from review_portal.models.user import User
from review_portal.security.auth import extract_user_id, load_user
from review_portal.security.config import SecurityConfig
from review_portal.security.context import AuthzContext
from review_portal.services.scope import resolve_department_scope

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_authz(request: Request) -> AuthzContext:
    authz = getattr(request.state, "authz", None)
    if authz is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return authz


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """The logged-in user, loaded in the handler's own session."""

    authz = get_authz(request)
    user = db.get(User, authz.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency.

    Runs after routing, so it can merge the YAML rule for the path with any
    decorator metadata on the endpoint. Route handlers need no auth code of
    their own.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_roles = set(getattr(endpoint, "__security_required_roles__", set())) if endpoint else set()
    decorator_filter_dept = bool(getattr(endpoint, "__security_filter_by_department__", False)) if endpoint else False

    auth_required = rule.auth_required or bool(decorator_roles) or decorator_filter_dept

    user_id = extract_user_id(request, config)
    if user_id is None:
        if auth_required:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
        return

    try:
        user = load_user(db, user_id)
    except HTTPException:
        request.session.pop(config.auth.session_key, None)
        if auth_required:
            raise
        return

    role = user.role.value
    required_roles = set(rule.required_roles) | decorator_roles
    if required_roles and role not in required_roles:
        logger.warning("Role denied user_id=%s role=%s path=%s required=%s", user.id, role, path, sorted(required_roles))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Insufficient permissions.",
        )

    if rule.require_department and user.department_id is None:
        logger.warning("No department assigned user_id=%s path=%s", user.id, path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No department assigned.")

    permissions = config.permissions_for(role)
    request.state.authz = AuthzContext(
        user_id=user.id,
        role=role,
        department_id=user.department_id,
        hod_level=user.hod_level.value if user.hod_level else None,
        permissions=permissions,
        department_ids=_department_scope(db, user, permissions),
        filter_by_department=rule.filter_by_department or decorator_filter_dept,
    )


def _department_scope(db: Session, user: User, permissions: frozenset[str]) -> frozenset[int] | None:
    if "view_all_departments" in permissions:
        return None
    if user.is_hod:
        return frozenset(resolve_department_scope(db, user.id))
    if user.department_id is not None:
        return frozenset({user.department_id})
    return frozenset()
