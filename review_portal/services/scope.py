from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from review_portal.models.organization import Department, department_hods

logger = logging.getLogger(__name__)


def _assigned_department_ids(db: Session, hod_id: int) -> list[int]:
    stmt = (
        select(Department.id)
        .join(department_hods, department_hods.c.department_id == Department.id)
        .where(department_hods.c.user_id == hod_id, Department.is_active.is_(True))
        .order_by(Department.id)
    )
    return list(db.scalars(stmt).all())


def descendant_department_ids(db: Session, department_id: int) -> list[int]:
    """
    All active departments below `department_id` (depth-first, parent before children).

    The root itself is not included. Visited ids are tracked so a malformed
    parent cycle still terminates.
    """

    found: list[int] = []
    visited = {department_id}
    stack = [department_id]
    while stack:
        current = stack.pop()
        if current != department_id:
            found.append(current)
        # Pushed in descending id order so the lowest id is visited first.
        children = db.scalars(
            select(Department.id)
            .where(Department.parent_id == current, Department.is_active.is_(True))
            .order_by(Department.id.desc())
        ).all()
        for child_id in children:
            if child_id in visited:
                logger.warning("Department cycle detected at id=%s (parent=%s)", child_id, current)
                continue
            visited.add(child_id)
            stack.append(child_id)
    return found


def resolve_department_scope(db: Session, hod_id: int) -> list[int]:
    """
    Departments an HOD may act on.

    Starts from every active department that lists the HOD, then walks each
    one's sub-departments. A sub-department is only included when the same
    HOD is listed on it too; headship is never inherited from a parent.
    """

    assigned = _assigned_department_ids(db, hod_id)
    assigned_set = set(assigned)

    scope: list[int] = list(assigned)
    seen = set(assigned)
    for department_id in assigned:
        for sub_id in descendant_department_ids(db, department_id):
            if sub_id in assigned_set and sub_id not in seen:
                seen.add(sub_id)
                scope.append(sub_id)

    logger.debug("Department scope resolved hod_id=%s departments=%s", hod_id, scope)
    return scope
