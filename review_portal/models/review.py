from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_portal.db.base import Base

if TYPE_CHECKING:
    from review_portal.models.organization import Department
    from review_portal.models.question import Question
    from review_portal.models.user import User


class Review(Base):
    """
    A rating of `employee` by `reviewer` for one period.

    Self-assessments live in the same table with `reviewer_id == employee_id`
    and `is_self_assessment` set, so the one unique constraint below covers
    both kinds of record.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("employee_id", "reviewer_id", "period", name="uq_reviews_employee_reviewer_period"),
        Index("ix_reviews_employee_period", "employee_id", "period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    reviewer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    department_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id"), nullable=True, index=True)

    # "Q3 2025" or "M7 2025", depending on APP_PERIOD_MODE.
    period: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    is_self_assessment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    overall_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Single-number rating from before the question bank existed.
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comments: Mapped[str] = mapped_column(Text, nullable=False)

    review_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    employee: Mapped[User] = relationship(foreign_keys=[employee_id])
    reviewer: Mapped[User] = relationship(foreign_keys=[reviewer_id])
    department: Mapped[Department | None] = relationship()
    answers: Mapped[list[ReviewAnswer]] = relationship(
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="ReviewAnswer.id",
    )

    @property
    def effective_score(self) -> float:
        if self.overall_score and self.overall_score > 0:
            return self.overall_score
        return self.score or 0


class ReviewAnswer(Base):
    __tablename__ = "review_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    review_id: Mapped[int] = mapped_column(ForeignKey("reviews.id"), nullable=False, index=True)
    question_id: Mapped[int] = mapped_column(ForeignKey("questions.id"), nullable=False)

    # 1..6 for rating questions.
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_option: Mapped[str | None] = mapped_column(String(255), nullable=True)
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    review: Mapped[Review] = relationship(back_populates="answers")
    question: Mapped[Question] = relationship()
