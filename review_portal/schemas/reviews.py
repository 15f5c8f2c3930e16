from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnswerIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: int = Field(alias="question")
    rating: int | None = Field(default=None, ge=1, le=6)
    response_option: str | None = Field(default=None, alias="responseOption")
    response_text: str | None = Field(default=None, alias="responseText")

    @field_validator("response_option", "response_text")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None


class ReviewSubmission(BaseModel):
    """Body of POST /hod/reviews."""

    model_config = ConfigDict(populate_by_name=True)

    employee_id: int | None = Field(default=None, alias="employee")
    answers: list[AnswerIn] = Field(default_factory=list)
    comments: str = ""


class SelfAssessmentSubmission(BaseModel):
    """Body of POST /employee/self-assessment."""

    answers: list[AnswerIn] = Field(default_factory=list)
    comments: str = ""


class SelfAssessmentAnswerOut(BaseModel):
    question_id: int
    question_text: str | None
    input_type: str | None
    category: str | None
    rating: int | None
    response_option: str | None
    response_text: str | None


class SelfAssessmentOut(BaseModel):
    employee_name: str
    employee_id: str
    department: str | None
    period: str
    comments: str
    answers: list[SelfAssessmentAnswerOut]
    submitted_at: datetime
