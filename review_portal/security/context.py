from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization context.

    Attached to `request.state.authz` by the security dependency and copied
    into `Session.info["authz"]` by `get_db`.
    """

    user_id: int
    role: str
    department_id: int | None
    hod_level: str | None
    permissions: frozenset[str]

    # Departments the caller may act on; None means unrestricted.
    department_ids: frozenset[int] | None

    # Scope reviews loaded through the ORM to `department_ids`.
    filter_by_department: bool

    @property
    def can_view_all_departments(self) -> bool:
        return self.department_ids is None
