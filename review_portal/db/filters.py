from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _apply_department_scope(execute_state) -> None:
    """
    Transparent department scoping for reviews.

    On endpoints flagged `filter_by_department`, a plain
        db.scalars(select(Review))
    only returns reviews filed against the caller's departments. Queries can
    opt out with `.execution_options(all_departments=True)`.
    """

    if not execute_state.is_select:
        return

    authz = execute_state.session.info.get("authz")
    if authz is None or not authz.filter_by_department or authz.can_view_all_departments:
        return

    if execute_state.execution_options.get("all_departments", False):
        return

    # Local import to avoid cycles.
    from review_portal.models.review import Review  # noqa: WPS433 (local import)

    department_ids = tuple(sorted(authz.department_ids))
    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(Review, lambda cls: cls.department_id.in_(department_ids), include_aliases=True),
    )
