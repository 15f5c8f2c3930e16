from __future__ import annotations

from review_portal import models  # noqa: F401  (register tables on Base.metadata)
from review_portal.db.base import Base
from review_portal.db.session import SessionLocal, engine
from review_portal.services.accounts import ensure_default_admin


def init_db() -> None:
    """
    Create tables and the bootstrap admin.

    Safe to run on every startup: existing tables and an existing admin are
    left alone.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        ensure_default_admin(db)
