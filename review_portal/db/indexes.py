"""
Bring the indexes of an existing database in line with the models.

Older databases carried a unique index on `reviews (employee_id, period)`,
which allowed only one review per person per period, and a unique index on
`users.email`. Both are dropped here; the current indexes and uniqueness
constraints are then created if missing.

Run with `python -m review_portal.db.indexes`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import Engine, Index, MetaData, Table, UniqueConstraint, inspect
from sqlalchemy.schema import CreateIndex

from review_portal import models  # noqa: F401  (register tables on Base.metadata)
from review_portal.db.base import Base

logger = logging.getLogger(__name__)

# (table, columns) pairs that must not be unique any more.
STALE_UNIQUE = {
    ("reviews", frozenset({"employee_id", "period"})),
    ("users", frozenset({"email"})),
}

TABLES = ("reviews", "users")


@dataclass
class IndexReport:
    dropped: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)


def _is_stale(table_name: str, index: dict) -> bool:
    return bool(index.get("unique")) and (table_name, frozenset(index["column_names"])) in STALE_UNIQUE


def repair_indexes(engine: Engine) -> IndexReport:
    report = IndexReport()

    with engine.begin() as conn:
        inspector = inspect(conn)
        existing_tables = set(inspector.get_table_names())

        for table_name in TABLES:
            if table_name not in existing_tables:
                logger.info("Table %s does not exist yet; skipping", table_name)
                continue

            current = inspector.get_indexes(table_name)
            for index in current:
                logger.info(
                    "%s: index %s on %s%s",
                    table_name,
                    index["name"],
                    index["column_names"],
                    " (unique)" if index.get("unique") else "",
                )

            # Reflect into a private MetaData so the model tables stay untouched.
            reflected = Table(table_name, MetaData(), autoload_with=conn)
            for index in current:
                if not _is_stale(table_name, index):
                    continue
                stale = next(i for i in reflected.indexes if i.name == index["name"])
                stale.drop(conn)
                report.dropped.append(index["name"])
                logger.info("Dropped stale unique index %s on %s", index["name"], table_name)

            names = {i["name"] for i in current} - set(report.dropped)
            names |= {c["name"] for c in inspector.get_unique_constraints(table_name) if c.get("name")}

            model_table = Base.metadata.tables[table_name]
            for index in sorted(model_table.indexes, key=lambda i: str(i.name)):
                if index.name in names:
                    continue
                conn.execute(CreateIndex(index))
                report.created.append(index.name)
                logger.info("Created index %s on %s", index.name, table_name)

            # Uniqueness constraints cannot be added to an existing table
            # everywhere (SQLite), so missing ones come back as unique indexes.
            for constraint in model_table.constraints:
                if not isinstance(constraint, UniqueConstraint) or constraint.name in names:
                    continue
                columns = [reflected.c[c.name] for c in constraint.columns]
                Index(constraint.name, *columns, unique=True).create(conn)
                report.created.append(constraint.name)
                logger.info("Created unique index %s on %s", constraint.name, table_name)

    return report


def main() -> None:
    from review_portal.db.session import engine
    from review_portal.logging_config import configure_app_logging
    from review_portal.settings import get_settings

    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    configure_app_logging(get_settings().log_level)

    report = repair_indexes(engine)
    logger.info("Index repair finished: dropped=%s created=%s", report.dropped, report.created)


if __name__ == "__main__":
    main()
