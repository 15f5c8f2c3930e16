from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from review_portal.db.session import get_db
from review_portal.errors import ValidationFailed
from review_portal.models.question import AssessmentType, Question
from review_portal.models.review import Review, ReviewAnswer
from review_portal.models.user import User, UserRole
from review_portal.schemas.reviews import ReviewSubmission
from review_portal.security.context import AuthzContext
from review_portal.security.decorators import filter_by_department
from review_portal.security.dependencies import get_authz, get_current_user
from review_portal.services import exports, stats
from review_portal.services.periods import current_period, normalize_period
from review_portal.services.reviews import submit_review, view_self_assessment
from review_portal.settings import get_settings
from review_portal.templating import csv_response, envelope, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hod", tags=["hod"])

RECENT_REVIEWS = 5


def _scope(authz: AuthzContext) -> list[int]:
    return sorted(authz.department_ids or ())


def _people(db: Session, hod: User, scope: list[int]) -> tuple[list[User], list[User], list[User]]:
    """Employees in scope, HODs in scope, and HODs elsewhere (all active, never the caller)."""

    base = (
        select(User)
        .where(User.is_active.is_(True), User.id != hod.id)
        .options(selectinload(User.department))
        .order_by(User.name)
    )
    in_scope = User.department_id.in_(scope)

    employees = db.scalars(base.where(User.role == UserRole.EMPLOYEE, in_scope)).all()
    department_hods = db.scalars(base.where(User.role == UserRole.HOD, in_scope)).all()
    other_hods = db.scalars(
        base.where(User.role == UserRole.HOD, or_(User.department_id.is_(None), User.department_id.not_in(scope)))
    ).all()
    return list(employees), list(department_hods), list(other_hods)


def _reviewed_ids(db: Session, reviewer_id: int, period: str) -> set[int]:
    stmt = select(Review.employee_id).where(
        Review.reviewer_id == reviewer_id,
        Review.period == period,
        Review.is_self_assessment.is_(False),
    )
    return set(db.scalars(stmt).all())


def _my_reviews(db: Session, reviewer_id: int, limit: int | None = None) -> list[Review]:
    stmt = (
        select(Review)
        .where(Review.reviewer_id == reviewer_id, Review.is_self_assessment.is_(False))
        .options(
            selectinload(Review.employee),
            selectinload(Review.answers).selectinload(ReviewAnswer.question),
        )
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt).all())


@router.get("/dashboard")
def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    authz: AuthzContext = Depends(get_authz),
) -> Response:
    mode = get_settings().period_mode
    period = current_period(mode)
    scope = _scope(authz)

    employees, department_hods, other_hods = _people(db, user, scope)
    reviewed = _reviewed_ids(db, user.id, period)

    return render(
        request,
        "hod/dashboard.html",
        {
            "department": user.department,
            "total_employees": len(employees),
            "total_hods": len(department_hods) + len(other_hods),
            "current_period_reviews": stats.review_count(db, period, scope),
            "avg_rating": stats.average_rating(db, period, scope),
            "pending_employee_reviews": sum(1 for e in employees if e.id not in reviewed),
            "pending_hod_reviews": sum(1 for h in department_hods + other_hods if h.id not in reviewed),
            "recent_reviews": _my_reviews(db, user.id, RECENT_REVIEWS),
            "period_trends": stats.period_trends(db, mode, scope),
            "period": period,
        },
    )


@router.get("/reviews")
def reviews_page(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    authz: AuthzContext = Depends(get_authz),
) -> Response:
    period = current_period(get_settings().period_mode)
    scope = _scope(authz)

    employees, department_hods, other_hods = _people(db, user, scope)
    reviewed = _reviewed_ids(db, user.id, period)

    questions = db.scalars(
        select(Question)
        .where(
            Question.is_active.is_(True),
            Question.assessment_type == AssessmentType.REVIEW,
            or_(Question.department_id.is_(None), Question.department_id.in_(scope)),
        )
        .options(selectinload(Question.department))
        .order_by(Question.category, Question.created_at, Question.id)
    ).all()

    return render(
        request,
        "hod/reviews.html",
        {
            "department": user.department,
            "employees_to_review": [e for e in employees if e.id not in reviewed],
            "department_hods_to_review": [h for h in department_hods if h.id not in reviewed],
            "other_hods_to_review": [h for h in other_hods if h.id not in reviewed],
            "questions": questions,
            "all_reviews": _my_reviews(db, user.id),
            "period": period,
        },
    )


@router.post("/reviews")
def submit(
    submission: ReviewSubmission,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    if submission.employee_id is None:
        raise ValidationFailed("Employee ID and detailed comments (min 10 chars) are required")

    period = current_period(get_settings().period_mode)
    submit_review(db, user, submission.employee_id, submission.answers, submission.comments, period)
    return envelope(True, "Review submitted successfully")


@router.get("/self-assessment/{employee_id}")
def self_assessment(
    employee_id: int,
    period: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    period = normalize_period(period, get_settings().period_mode)
    payload = view_self_assessment(db, user, employee_id, period)
    return envelope(True, "Self assessment loaded", data=payload.model_dump(mode="json"))


@router.get("/export/reviews")
@filter_by_department()
def export_reviews(
    period: str | None = None,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Response:
    period = normalize_period(period, get_settings().period_mode) if period else None
    reviews = exports.query_reviews(db, period, _scope(authz))
    logger.info("HOD reviews export user_id=%s period=%s rows=%s", authz.user_id, period, len(reviews))
    return csv_response(exports.reviews_csv(reviews), exports.export_filename("hod_reviews_export"))


@router.get("/export/performance")
@filter_by_department()
def export_performance(
    period: str | None = None,
    db: Session = Depends(get_db),
    authz: AuthzContext = Depends(get_authz),
) -> Response:
    period = normalize_period(period, get_settings().period_mode)
    rows = exports.performance_rows(db, period, _scope(authz))
    return csv_response(exports.performance_csv(rows), exports.export_filename("hod_performance_summary", period))
