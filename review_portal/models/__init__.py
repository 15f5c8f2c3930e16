"""ORM models. Importing this package registers every table on `Base.metadata`."""

from .organization import Department, department_hods
from .question import AssessmentType, InputType, Question, QuestionCategory
from .review import Review, ReviewAnswer
from .user import HodLevel, User, UserRole

__all__ = [
    "AssessmentType",
    "Department",
    "HodLevel",
    "InputType",
    "Question",
    "QuestionCategory",
    "Review",
    "ReviewAnswer",
    "User",
    "UserRole",
    "department_hods",
]
