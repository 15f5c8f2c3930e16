from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_portal.db.base import Base, enum_values

if TYPE_CHECKING:
    from review_portal.models.organization import Department
    from review_portal.models.user import User


class QuestionCategory(str, enum.Enum):
    PERFORMANCE = "performance"
    QUIZ = "quiz"
    ATTENDANCE = "attendance"
    LATE_REMARK = "late_remark"
    BEHAVIOUR = "behaviour"
    EXTRA = "extra"


class AssessmentType(str, enum.Enum):
    # Used by HODs to rate people.
    REVIEW = "review"
    # Used by employees to assess themselves; never affects ratings.
    SELF = "self"


class InputType(str, enum.Enum):
    RATING = "rating"
    MCQ = "mcq"
    TEXT = "text"


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)

    category: Mapped[QuestionCategory] = mapped_column(
        Enum(QuestionCategory, native_enum=False, values_callable=enum_values, length=20),
        default=QuestionCategory.PERFORMANCE,
        nullable=False,
    )
    assessment_type: Mapped[AssessmentType] = mapped_column(
        Enum(AssessmentType, native_enum=False, values_callable=enum_values, length=20),
        default=AssessmentType.REVIEW,
        nullable=False,
        index=True,
    )
    input_type: Mapped[InputType] = mapped_column(
        Enum(InputType, native_enum=False, values_callable=enum_values, length=20),
        default=InputType.RATING,
        nullable=False,
    )
    # Choices for MCQ questions; ignored for other input types.
    options: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # NULL means a global question shown to every department.
    department_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id"), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    department: Mapped[Department | None] = relationship()
    created_by: Mapped[User] = relationship()
