from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from review_portal.db.session import get_db
from review_portal.models.question import AssessmentType, InputType, Question
from review_portal.models.user import User
from review_portal.schemas.forms import QuestionForm, first_error
from review_portal.security.dependencies import get_current_user
from review_portal.services import stats
from review_portal.services.periods import current_period
from review_portal.settings import get_settings
from review_portal.templating import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


@router.post("/hod/questions")
def create_hod_question(
    payload: dict[str, Any] = Body(default_factory=dict),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    if not user.is_higher_hod:
        logger.warning("Question creation denied user_id=%s role=%s", user.id, user.role.value)
        return envelope(False, "Only Higher Level HODs can create questions", status.HTTP_403_FORBIDDEN)

    try:
        form = QuestionForm(
            text=payload.get("text"),
            category=payload.get("category"),
            assessment_type=AssessmentType.REVIEW.value,
            input_type=InputType.RATING.value,
            department_id=payload.get("department") or None,
        )
    except ValidationError as exc:
        return envelope(False, first_error(exc), status.HTTP_400_BAD_REQUEST)

    question = Question(
        text=form.text,
        category=form.category,
        assessment_type=form.assessment_type,
        input_type=form.input_type,
        options=[],
        department_id=form.department_id,
        created_by_id=user.id,
        is_active=True,
    )
    db.add(question)
    db.commit()
    logger.info("HOD question created id=%s department_id=%s by user_id=%s", question.id, question.department_id, user.id)

    return envelope(
        True,
        "Question created successfully",
        question={
            "id": question.id,
            "text": question.text,
            "category": question.category.value,
            "assessmentType": question.assessment_type.value,
            "department": question.department_id,
        },
    )


@router.get("/performance-data")
def performance_data(
    type: str | None = None,
    department_id: int | None = None,
    db: Session = Depends(get_db),
) -> Response:
    mode = get_settings().period_mode

    if type == "quarterly-trend":
        scope = [department_id] if department_id is not None else None
        trends = stats.period_trends(db, mode, scope)
        return JSONResponse(
            [{"period": t.period, "avgRating": t.avg_rating, "reviewCount": t.review_count} for t in trends]
        )

    if type == "department-comparison":
        comparison = stats.department_comparison(db, current_period(mode))
        return JSONResponse(
            [{"department": d.department, "avgRating": d.avg_rating, "reviewCount": d.review_count} for d in comparison]
        )

    return JSONResponse({"error": "Invalid data type"}, status_code=status.HTTP_400_BAD_REQUEST)
