"""
CSV exports for admins and HODs.

Each export is a fixed, unquoted header line followed by one fully quoted
row per record. Quotes inside values are doubled by the csv module; line
breaks in comments are flattened to spaces so every record stays on one line.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from review_portal.models.review import Review
from review_portal.models.user import User, UserRole
from review_portal.services.stats import performance_level

REVIEW_COLUMNS = (
    "Employee Name",
    "Employee ID",
    "Email",
    "Department",
    "Quarter",
    "Overall Score",
    "Reviewer",
    "Review Date",
    "Comments",
)

PERFORMANCE_COLUMNS = (
    "Employee Name",
    "Employee ID",
    "Email",
    "Department",
    "Role",
    "Average Score",
    "Review Count",
    "Performance Level",
    "Quarter",
)

UNKNOWN = "Unknown"


def _format_score(value: float | int | None) -> str:
    if not value:
        return "N/A"
    return f"{value:g}"


def _flatten(text: str | None) -> str:
    if not text:
        return ""
    return " ".join(text.replace("\r\n", "\n").split("\n"))


def _write(header: Iterable[str], rows: Iterable[Iterable[object]]) -> str:
    buffer = io.StringIO()
    buffer.write(",".join(header) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def query_reviews(
    db: Session,
    period: str | None = None,
    department_ids: Collection[int] | None = None,
) -> list[Review]:
    """Managerial reviews (newest first), optionally filtered by period and departments."""

    stmt = (
        select(Review)
        .where(Review.is_self_assessment.is_(False))
        .options(
            selectinload(Review.employee),
            selectinload(Review.reviewer),
            selectinload(Review.department),
        )
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    if period:
        stmt = stmt.where(Review.period == period)
    if department_ids is not None:
        stmt = stmt.where(Review.department_id.in_(list(department_ids)))
    return list(db.scalars(stmt).all())


def review_row(review: Review) -> list[str]:
    employee = review.employee
    return [
        employee.name if employee else UNKNOWN,
        employee.employee_id if employee else UNKNOWN,
        employee.email if employee else UNKNOWN,
        review.department.name if review.department else UNKNOWN,
        review.period,
        _format_score(review.overall_score or review.score),
        review.reviewer.name if review.reviewer else UNKNOWN,
        review.review_date.date().isoformat(),
        _flatten(review.comments),
    ]


def reviews_csv(reviews: Iterable[Review]) -> str:
    return _write(REVIEW_COLUMNS, (review_row(review) for review in reviews))


@dataclass(frozen=True)
class PerformanceRow:
    name: str
    employee_id: str
    email: str
    department: str
    role: str
    avg_score: str
    review_count: int
    performance_level: str
    period: str

    def as_row(self) -> list[object]:
        return [
            self.name,
            self.employee_id,
            self.email,
            self.department,
            self.role,
            self.avg_score,
            self.review_count,
            self.performance_level,
            self.period,
        ]


def performance_rows(
    db: Session,
    period: str,
    department_ids: Collection[int] | None = None,
) -> list[PerformanceRow]:
    """One summary row per active employee/HOD (within `department_ids` when given)."""

    people_stmt = (
        select(User)
        .where(User.role.in_([UserRole.EMPLOYEE, UserRole.HOD]), User.is_active.is_(True))
        .options(selectinload(User.department))
        .order_by(User.name, User.id)
    )
    if department_ids is not None:
        people_stmt = people_stmt.where(User.department_id.in_(list(department_ids)))
    people = list(db.scalars(people_stmt).all())

    scores: dict[int, list[float]] = {}
    for review in query_reviews(db, period, department_ids):
        scores.setdefault(review.employee_id, []).append(review.effective_score)

    rows: list[PerformanceRow] = []
    for person in people:
        received = scores.get(person.id, [])
        avg = round(sum(received) / len(received), 2) if received else 0.0
        rows.append(
            PerformanceRow(
                name=person.name,
                employee_id=person.employee_id,
                email=person.email,
                department=person.department.name if person.department else "Not Assigned",
                role=person.role.value.upper(),
                avg_score=f"{avg:.2f}" if received else "N/A",
                review_count=len(received),
                performance_level=performance_level(avg),
                period=period,
            )
        )
    return rows


def performance_csv(rows: Iterable[PerformanceRow]) -> str:
    return _write(PERFORMANCE_COLUMNS, (row.as_row() for row in rows))


def export_filename(prefix: str, period: str | None = None, today: date | None = None) -> str:
    stamp = (today or date.today()).isoformat()
    if period:
        return f"{prefix}_{period.replace(' ', '_')}_{stamp}.csv"
    return f"{prefix}_{stamp}.csv"
