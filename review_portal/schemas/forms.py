"""
Validation for the admin HTML forms.

Handlers build one of these from the posted fields; on `ValidationError` they
re-render the page with `first_error(exc)` shown inline.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, EmailStr, ValidationError, field_validator, model_validator

from review_portal.models.question import AssessmentType, InputType, QuestionCategory
from review_portal.models.user import HodLevel, UserRole

MIN_PASSWORD_LENGTH = 6


_FIELD_MESSAGES = {
    "email": "Valid email is required",
    "department_id": "Department is required",
    "parent_id": "Invalid parent department",
    "hod_ids": "Invalid HOD selection",
}


def first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    message = error["msg"]
    if message.startswith("Value error, "):
        return message.removeprefix("Value error, ")
    field = error["loc"][0] if error["loc"] else None
    return _FIELD_MESSAGES.get(field, message)


def _required(value: str | None, message: str) -> str:
    if value is not None and not isinstance(value, str):
        raise ValueError(message)
    value = (value or "").strip()
    if not value:
        raise ValueError(message)
    return value


def _choice(value: str | None, choices: type[enum.Enum], message: str) -> str:
    if not isinstance(value, str) or value not in {c.value for c in choices}:
        raise ValueError(message)
    return value


def _optional_id(value: str | int | None, message: str) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError(message)
    try:
        return int(value)
    except ValueError:
        raise ValueError(message) from None


class LoginForm(BaseModel):
    employee_id: str
    password: str

    @field_validator("employee_id")
    @classmethod
    def _employee_id(cls, value: str) -> str:
        return _required(value, "Employee ID is required")

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class EmployeeForm(BaseModel):
    name: str
    email: EmailStr
    employee_id: str
    role: UserRole
    department_id: int
    hod_level: HodLevel | None = None
    password: str | None = None

    # Editing keeps the current password when the field is left blank.
    password_required: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: str | None) -> str:
        return _required(value, "Name is required")

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: str | None) -> str:
        value = _required(value, "Valid email is required")
        return value.lower()

    @field_validator("employee_id", mode="before")
    @classmethod
    def _employee_id(cls, value: str | None) -> str:
        return _required(value, "Employee ID is required")

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, value: str | None) -> str:
        if not isinstance(value, str) or value not in (UserRole.EMPLOYEE.value, UserRole.HOD.value):
            raise ValueError("Valid role is required")
        return value

    @field_validator("department_id", mode="before")
    @classmethod
    def _department(cls, value: str | int | None) -> int:
        department_id = _optional_id(value, "Invalid department")
        if department_id is None:
            raise ValueError("Department is required")
        return department_id

    @field_validator("hod_level", mode="before")
    @classmethod
    def _hod_level(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("password", mode="before")
    @classmethod
    def _password(cls, value: str | None) -> str | None:
        return value or None

    @model_validator(mode="after")
    def _check(self) -> EmployeeForm:
        if self.password is None and self.password_required:
            raise ValueError("Password must be at least 6 characters")
        if self.password is not None and len(self.password) < MIN_PASSWORD_LENGTH:
            raise ValueError("Password must be at least 6 characters")
        if self.role == UserRole.HOD and self.hod_level is None:
            raise ValueError("HOD level is required for HODs")
        if self.role != UserRole.HOD:
            self.hod_level = None
        return self


class DepartmentForm(BaseModel):
    name: str
    description: str = ""
    parent_id: int | None = None
    hod_ids: list[int] = []

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: str | None) -> str:
        return _required(value, "Department name is required")

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: str | None) -> str:
        return (value or "").strip()

    @field_validator("parent_id", mode="before")
    @classmethod
    def _parent(cls, value: str | int | None) -> int | None:
        return _optional_id(value, "Invalid parent department")

    @field_validator("hod_ids", mode="before")
    @classmethod
    def _hods(cls, value: list | str | None) -> list[int]:
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        hod_ids = (_optional_id(v, "Invalid HOD selection") for v in value)
        return [hod_id for hod_id in hod_ids if hod_id is not None]


def split_options(raw: str | list[str] | None) -> list[str]:
    """MCQ options arrive one per line; a single line is split on commas instead."""

    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(item).strip() for item in raw if str(item).strip()]
    by_lines = [line.strip() for line in raw.split("\n") if line.strip()]
    if len(by_lines) > 1:
        return by_lines
    return [item.strip() for item in raw.split(",") if item.strip()]


class QuestionForm(BaseModel):
    text: str
    category: QuestionCategory
    assessment_type: AssessmentType = AssessmentType.REVIEW
    input_type: InputType = InputType.RATING
    department_id: int | None = None
    options: list[str] = []

    @field_validator("text", mode="before")
    @classmethod
    def _text(cls, value: str | None) -> str:
        return _required(value, "Question text is required")

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: str | None) -> str:
        return _choice(value, QuestionCategory, "Valid category is required")

    @field_validator("assessment_type", mode="before")
    @classmethod
    def _assessment_type(cls, value: str | None) -> str:
        return _choice(value, AssessmentType, "Valid assessment type is required")

    @field_validator("input_type", mode="before")
    @classmethod
    def _input_type(cls, value: str | None) -> str:
        return _choice(value, InputType, "Valid input type is required")

    @field_validator("department_id", mode="before")
    @classmethod
    def _department(cls, value: str | int | None) -> int | None:
        return _optional_id(value, "Invalid department")

    @field_validator("options", mode="before")
    @classmethod
    def _options(cls, value: str | list[str] | None) -> list[str]:
        return split_options(value)

    @model_validator(mode="after")
    def _check(self) -> QuestionForm:
        if self.input_type != InputType.MCQ:
            self.options = []
        elif not self.options:
            raise ValueError("Multiple-choice questions need at least one option")
        return self
