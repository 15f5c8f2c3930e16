from __future__ import annotations

from collections.abc import Callable


def require_roles(roles: list[str]) -> Callable:
    """
    Attach required roles to an endpoint.

    This decorator does NOT perform auth itself. The global security
    dependency reads the metadata after routing and merges it with the
    YAML rule for the path.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_roles__", set()))
        setattr(fn, "__security_required_roles__", existing | set(roles))
        return fn

    return decorator


def filter_by_department() -> Callable:
    """
    Enable department scoping of review queries for this endpoint.
    """

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_filter_by_department__", True)
        return fn

    return decorator
