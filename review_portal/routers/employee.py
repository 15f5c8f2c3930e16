from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from review_portal.db.session import get_db
from review_portal.models.question import AssessmentType, Question
from review_portal.models.user import User
from review_portal.schemas.reviews import SelfAssessmentSubmission
from review_portal.security.dependencies import get_current_user
from review_portal.services import stats
from review_portal.services.periods import current_period
from review_portal.services.reviews import get_self_assessment, save_self_assessment
from review_portal.settings import get_settings
from review_portal.templating import envelope, render

router = APIRouter(prefix="/employee", tags=["employee"])


@router.get("/dashboard")
def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    mode = get_settings().period_mode
    period = current_period(mode)

    self_questions = db.scalars(
        select(Question)
        .where(
            Question.is_active.is_(True),
            Question.assessment_type == AssessmentType.SELF,
            or_(Question.department_id.is_(None), Question.department_id == user.department_id),
        )
        .options(selectinload(Question.department))
        .order_by(Question.created_at, Question.id)
    ).all()

    history = stats.employee_history(db, user.id, mode)
    current = history.by_period.get(period)

    return render(
        request,
        "employee/dashboard.html",
        {
            "employee": user,
            "current_period_data": current,
            "current_period_review": current.reviews[0] if current else None,
            "history": history,
            "self_questions": self_questions,
            "self_assessment": get_self_assessment(db, user.id, period),
            "period": period,
        },
    )


@router.post("/self-assessment")
def self_assessment(
    submission: SelfAssessmentSubmission,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    period = current_period(get_settings().period_mode)
    save_self_assessment(db, user, submission.answers, submission.comments, period)
    return envelope(True, "Self assessment saved")
