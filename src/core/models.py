"""
Domain models for the exam client.

Wire-facing shapes exchanged with the backend. Field names are snake_case in
Python and camelCase on the wire (``questionId``, ``expiresAt``); both spellings
are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["student", "teacher"]
QuestionType = Literal["single", "multiple", "short", "numeric"]


class AttemptStatus(str, Enum):
    """Server-reported status of an attempt."""

    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    EXPIRED = "expired"


class NotificationKind(str, Enum):
    """Severity of a user-facing notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class WireModel(BaseModel):
    """Base for camelCase wire models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ========================================
# Identity
# ========================================


class UserProfile(WireModel):
    """Cached profile of the logged-in user."""

    id: int
    username: str
    first_name: str = ""
    last_name: str = ""
    role: Role
    telegram_id: int | None = None
    telegram_username: str | None = None

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username


class LoginResponse(WireModel):
    """Token issued by the backend. Expiry is optional on the wire."""

    token: str
    expires_at: datetime | None = None


# ========================================
# Tests and attempts
# ========================================


class QuestionOption(WireModel):
    id: int
    text: str


class StudentQuestion(WireModel):
    """A question as presented to a student (no correct answers)."""

    id: int
    prompt: str
    type: QuestionType
    points: float = 1
    options: list[QuestionOption] = Field(default_factory=list)


class StudentTestSummary(WireModel):
    id: int
    title: str
    description: str = ""
    question_count: int = 0
    time_limit_sec: int = 1800
    status: Literal["open", "completed"] = "open"


class StudentAttempt(WireModel):
    """Identity and timing of one attempt."""

    id: int
    test_id: int
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime
    expires_at: datetime
    submitted_at: datetime | None = None


class AttemptTest(WireModel):
    """The test body delivered together with a started attempt."""

    id: int
    title: str
    description: str = ""
    time_limit_sec: int = 1800
    questions: list[StudentQuestion] = Field(default_factory=list)


class AttemptBundle(WireModel):
    """Everything the client holds for an in-progress attempt."""

    attempt: StudentAttempt
    test: AttemptTest

    @property
    def question_ids(self) -> list[int]:
        return [question.id for question in self.test.questions]


class AnswerInput(WireModel):
    """
    A draft answer for one question.

    Only the field matching the question type is meaningful. Which fields were
    explicitly provided is tracked by pydantic (``model_fields_set``) so a
    partial edit can be merged without clobbering absent fields.
    """

    question_id: int
    selected_option_ids: list[int] | None = None
    text_answer: str | None = None
    numeric_answer: float | None = None

    @classmethod
    def empty(cls, question_id: int) -> AnswerInput:
        return cls(question_id=question_id, selected_option_ids=[])

    def merged_with(self, edit: AnswerInput) -> AnswerInput:
        """Shallow-merge ``edit`` over this answer; fields absent from the edit survive."""
        return self.model_copy(update=edit.model_dump(exclude_unset=True))

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)
