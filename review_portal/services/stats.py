"""
Aggregations behind the dashboards, the trend charts and the performance export.

All managerial figures exclude self-assessments. Department-level averages
are averages of per-employee averages, so someone with five reviews in a
period weighs the same as someone with one.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import date

from sqlalchemy import Select, case, func, select
from sqlalchemy.orm import Session

from review_portal.models.organization import Department
from review_portal.models.review import Review
from review_portal.services.periods import PeriodMode, recent_periods

# SQL twin of Review.effective_score.
effective_score = case(
    (Review.overall_score > 0, Review.overall_score),
    else_=func.coalesce(Review.score, 0),
)

PERFORMANCE_LEVELS: tuple[tuple[float, str], ...] = (
    (6, "Outstanding Performance"),
    (5, "Superior Performance"),
    (4, "Effective Performance"),
    (3, "Standard Performance"),
    (2, "Developing Performance"),
)


def performance_level(score: float) -> str:
    for threshold, label in PERFORMANCE_LEVELS:
        if score >= threshold:
            return label
    return "Ineffective Performance"


def _round(value: float | None) -> float:
    return round(float(value), 2) if value is not None else 0.0


def _managerial(stmt: Select, period: str | None, department_ids: Collection[int] | None) -> Select:
    stmt = stmt.where(Review.is_self_assessment.is_(False))
    if period is not None:
        stmt = stmt.where(Review.period == period)
    if department_ids is not None:
        stmt = stmt.where(Review.department_id.in_(list(department_ids)))
    return stmt


def review_count(db: Session, period: str, department_ids: Collection[int] | None = None) -> int:
    stmt = _managerial(select(func.count(Review.id)), period, department_ids)
    return int(db.scalar(stmt) or 0)


def average_rating(db: Session, period: str, department_ids: Collection[int] | None = None) -> float:
    """Average of per-employee average effective scores for `period`."""

    per_employee = _managerial(
        select(Review.employee_id, func.avg(effective_score).label("avg_score")),
        period,
        department_ids,
    ).group_by(Review.employee_id).subquery()

    value = db.scalar(select(func.avg(per_employee.c.avg_score)))
    return _round(value)


@dataclass(frozen=True)
class DepartmentStat:
    department: str
    avg_rating: float
    review_count: int


def department_stats(db: Session, period: str) -> list[DepartmentStat]:
    """
    Per-department ranking for `period`.

    `review_count` counts reviewed employees (one per employee/department
    pair), matching the average-of-averages used for `avg_rating`.
    """

    per_employee = _managerial(
        select(
            Review.employee_id,
            Review.department_id,
            func.avg(effective_score).label("avg_score"),
        ),
        period,
        None,
    ).group_by(Review.employee_id, Review.department_id).subquery()

    stmt = (
        select(
            Department.name,
            func.avg(per_employee.c.avg_score).label("avg_rating"),
            func.count().label("review_count"),
        )
        .join(per_employee, per_employee.c.department_id == Department.id)
        .group_by(Department.name)
        .order_by(func.avg(per_employee.c.avg_score).desc())
    )
    return [
        DepartmentStat(department=row.name, avg_rating=_round(row.avg_rating), review_count=int(row.review_count))
        for row in db.execute(stmt)
    ]


def department_comparison(db: Session, period: str) -> list[DepartmentStat]:
    """Flat average of effective scores per department for `period` (chart data)."""

    stmt = _managerial(
        select(
            Department.name,
            func.avg(effective_score).label("avg_rating"),
            func.count(Review.id).label("review_count"),
        )
        .select_from(Review)
        .join(Department, Department.id == Review.department_id),
        period,
        None,
    ).group_by(Department.name).order_by(func.avg(effective_score).desc())

    return [
        DepartmentStat(department=row.name, avg_rating=_round(row.avg_rating), review_count=int(row.review_count))
        for row in db.execute(stmt)
    ]


@dataclass(frozen=True)
class PeriodTrend:
    period: str
    avg_rating: float
    review_count: int


def period_trends(
    db: Session,
    mode: PeriodMode = "quarter",
    department_ids: Collection[int] | None = None,
    count: int = 4,
    today: date | None = None,
) -> list[PeriodTrend]:
    return [
        PeriodTrend(
            period=key,
            avg_rating=average_rating(db, key, department_ids),
            review_count=review_count(db, key, department_ids),
        )
        for key in recent_periods(mode, count, today)
    ]


# ---- Per-employee history -------------------------------------------------------------


@dataclass
class PeriodSummary:
    period: str
    avg_score: float
    review_count: int
    reviews: list[Review]


@dataclass
class EmployeeHistory:
    by_period: dict[str, PeriodSummary]
    avg_rating: float
    trend: list[dict]
    total_reviews: int


def summarize_reviews(reviews: Iterable[Review]) -> dict[str, PeriodSummary]:
    """Group reviews by period and average their effective scores."""

    grouped: dict[str, list[Review]] = defaultdict(list)
    for review in reviews:
        grouped[review.period].append(review)

    return {
        period: PeriodSummary(
            period=period,
            avg_score=round(sum(r.effective_score for r in items) / len(items), 2),
            review_count=len(items),
            reviews=items,
        )
        for period, items in grouped.items()
    }


def employee_history(
    db: Session,
    employee_id: int,
    mode: PeriodMode = "quarter",
    today: date | None = None,
) -> EmployeeHistory:
    reviews = list(
        db.scalars(
            select(Review)
            .where(Review.employee_id == employee_id, Review.is_self_assessment.is_(False))
            .order_by(Review.created_at.desc(), Review.id.desc())
        ).all()
    )
    by_period = summarize_reviews(reviews)

    averages = [summary.avg_score for summary in by_period.values()]
    avg_rating = round(sum(averages) / len(averages), 2) if averages else 0.0

    trend = []
    for key in recent_periods(mode, 4, today):
        summary = by_period.get(key)
        trend.append(
            {
                "period": key,
                "score": summary.avg_score if summary else None,
                "review_count": summary.review_count if summary else 0,
            }
        )

    return EmployeeHistory(by_period=by_period, avg_rating=avg_rating, trend=trend, total_reviews=len(reviews))
