from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from review_portal.errors import DuplicateSubmission, NotAuthorized, NotFound, ValidationFailed
from review_portal.models.question import AssessmentType, Question
from review_portal.models.review import Review, ReviewAnswer
from review_portal.models.user import User
from review_portal.schemas.reviews import AnswerIn, SelfAssessmentAnswerOut, SelfAssessmentOut
from review_portal.services.scope import resolve_department_scope

logger = logging.getLogger(__name__)

MIN_COMMENT_LENGTH = 10
DUPLICATE_REVIEW_MESSAGE = "You have already reviewed this person for this period"


def overall_score(answers: Sequence[AnswerIn]) -> float | None:
    """Mean of the answer ratings (unrated answers count as 0), rounded to 2 dp."""

    if not answers:
        return None
    total = sum(answer.rating or 0 for answer in answers)
    return round(total / len(answers), 2)


def _check_questions(db: Session, answers: Sequence[AnswerIn], assessment_type: AssessmentType) -> None:
    """Every answer must point at an active question of the given assessment type."""

    question_ids = {answer.question_id for answer in answers}
    if not question_ids:
        return
    valid = set(
        db.scalars(
            select(Question.id).where(
                Question.id.in_(question_ids),
                Question.is_active.is_(True),
                Question.assessment_type == assessment_type,
            )
        )
    )
    unknown = sorted(question_ids - valid)
    if unknown:
        logger.info("Answers rejected for unknown questions ids=%s type=%s", unknown, assessment_type.value)
        raise ValidationFailed("Answers refer to unknown or inactive questions")


def _build_answers(answers: Sequence[AnswerIn]) -> list[ReviewAnswer]:
    return [
        ReviewAnswer(
            question_id=answer.question_id,
            rating=answer.rating,
            response_option=answer.response_option,
            response_text=answer.response_text,
        )
        for answer in answers
    ]


def can_review(db: Session, reviewer: User, employee: User) -> bool:
    """
    Reviewers act on people in their department scope.

    Anyone without a department and any HOD (cross-department HOD reviews)
    may also be reviewed.
    """

    if reviewer.is_admin:
        return True
    if employee.department_id is None or employee.is_hod:
        return True
    return employee.department_id in resolve_department_scope(db, reviewer.id)


def find_review(db: Session, employee_id: int, reviewer_id: int, period: str) -> Review | None:
    return db.scalars(
        select(Review).where(
            Review.employee_id == employee_id,
            Review.reviewer_id == reviewer_id,
            Review.period == period,
        )
    ).first()


def _stored_key(db: Session, employee_id: int, reviewer_id: int, period: str) -> bool:
    """Whether a review for this key is already in the database."""

    key = select(Review.id).where(
        Review.employee_id == employee_id,
        Review.reviewer_id == reviewer_id,
        Review.period == period,
    )
    return db.scalar(key.limit(1)) is not None


def submit_review(
    db: Session,
    reviewer: User,
    employee_id: int,
    answers: Sequence[AnswerIn],
    comments: str,
    period: str,
) -> Review:
    comments = (comments or "").strip()
    if len(comments) < MIN_COMMENT_LENGTH:
        raise ValidationFailed("Employee ID and detailed comments (min 10 chars) are required")

    employee = db.get(User, employee_id)
    if employee is None:
        raise NotFound("Employee not found")
    if employee.id == reviewer.id:
        raise ValidationFailed("Use the self-assessment form to rate yourself")

    if not can_review(db, reviewer, employee):
        logger.warning(
            "Review denied reviewer_id=%s employee_id=%s department_id=%s",
            reviewer.id,
            employee.id,
            employee.department_id,
        )
        raise NotAuthorized("Not authorized to review this employee")

    if find_review(db, employee.id, reviewer.id, period) is not None:
        raise DuplicateSubmission(DUPLICATE_REVIEW_MESSAGE)

    _check_questions(db, answers, AssessmentType.REVIEW)

    review = Review(
        employee_id=employee.id,
        reviewer_id=reviewer.id,
        department_id=employee.department_id,
        period=period,
        is_self_assessment=False,
        overall_score=overall_score(answers),
        comments=comments,
        answers=_build_answers(answers),
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # Only a concurrent submission for the same key is a duplicate.
        if not _stored_key(db, employee.id, reviewer.id, period):
            raise
        logger.info("Duplicate review rejected by database employee_id=%s reviewer_id=%s", employee.id, reviewer.id)
        raise DuplicateSubmission(DUPLICATE_REVIEW_MESSAGE) from exc

    logger.info(
        "Review submitted reviewer_id=%s employee_id=%s period=%s score=%s",
        reviewer.id,
        employee.id,
        period,
        review.overall_score,
    )
    return review


def save_self_assessment(
    db: Session,
    employee: User,
    answers: Sequence[AnswerIn],
    comments: str,
    period: str,
) -> Review:
    """Create or replace the employee's self-assessment for `period`."""

    comments = (comments or "").strip()
    if not comments:
        raise ValidationFailed("Overall comments are required")

    _check_questions(db, answers, AssessmentType.SELF)

    review = find_review(db, employee.id, employee.id, period)
    if review is None:
        review = Review(
            employee_id=employee.id,
            reviewer_id=employee.id,
            period=period,
            is_self_assessment=True,
        )
        db.add(review)

    review.department_id = employee.department_id
    review.comments = comments
    review.answers = _build_answers(answers)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _stored_key(db, employee.id, employee.id, period):
            raise
        raise DuplicateSubmission("Self assessment was submitted twice at once; please retry") from exc

    logger.info("Self assessment saved employee_id=%s period=%s", employee.id, period)
    return review


def get_self_assessment(db: Session, employee_id: int, period: str) -> Review | None:
    return db.scalars(
        select(Review)
        .where(
            Review.employee_id == employee_id,
            Review.reviewer_id == employee_id,
            Review.is_self_assessment.is_(True),
            Review.period == period,
        )
        .options(selectinload(Review.answers).selectinload(ReviewAnswer.question))
    ).first()


def view_self_assessment(db: Session, viewer: User, employee_id: int, period: str) -> SelfAssessmentOut:
    """Self-assessment of `employee_id` as seen by an HOD whose scope covers them."""

    employee = db.get(User, employee_id)
    if employee is None or employee.department is None:
        raise NotFound("Employee or department not found")

    if not viewer.is_admin and employee.department_id not in resolve_department_scope(db, viewer.id):
        raise NotAuthorized("Not authorized to view this self assessment")

    assessment = get_self_assessment(db, employee.id, period)
    if assessment is None:
        raise NotFound("Self assessment not found for this period")

    return SelfAssessmentOut(
        employee_name=employee.name,
        employee_id=employee.employee_id,
        department=employee.department.name,
        period=assessment.period,
        comments=assessment.comments,
        answers=[
            SelfAssessmentAnswerOut(
                question_id=answer.question_id,
                question_text=answer.question.text if answer.question else None,
                input_type=answer.question.input_type.value if answer.question else None,
                category=answer.question.category.value if answer.question else None,
                rating=answer.rating,
                response_option=answer.response_option,
                response_text=answer.response_text,
            )
            for answer in assessment.answers
        ],
        submitted_at=assessment.updated_at or assessment.created_at,
    )
