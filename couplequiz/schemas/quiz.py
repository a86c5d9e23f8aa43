# couplequiz/schemas/quiz.py
import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import ConfigDict, Field as PydanticField
from sqlmodel import SQLModel, Field

QuestionType = Literal["multiple_choice", "scale", "text", "yes_no"]

QuizStatus = Literal[
    "not_started",
    "in_progress",
    "solo_complete",
    "awaiting_partner",
    "ready_to_compare",
]


# ----- Catalogue -----


class QuestionRead(SQLModel):
    id: uuid.UUID
    category_id: str
    text: str
    type: QuestionType
    options: list[str] | None = None
    min_scale: int | None = None
    max_scale: int | None = None
    scale_labels: dict[str, str] | None = None
    release_date: datetime


class CategoryRead(SQLModel):
    """A category with its currently active questions."""

    id: str
    name: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    questions: list[QuestionRead] = []


# ----- Answers (tagged union at the boundary) -----


class _AnswerInBase(SQLModel):
    model_config = ConfigDict(extra="forbid")

    question_id: uuid.UUID


class ScaleAnswerIn(_AnswerInBase):
    kind: Literal["scale"] = "scale"
    value: int


class TextAnswerIn(_AnswerInBase):
    kind: Literal["text"] = "text"
    value: str = Field(max_length=2000)


class ChoiceAnswerIn(_AnswerInBase):
    kind: Literal["choice"] = "choice"
    value: str = Field(max_length=500)


class YesNoAnswerIn(_AnswerInBase):
    kind: Literal["yes_no"] = "yes_no"
    value: bool


AnswerIn = Annotated[
    Union[ScaleAnswerIn, TextAnswerIn, ChoiceAnswerIn, YesNoAnswerIn],
    PydanticField(discriminator="kind"),
]


class SaveAnswersRequest(SQLModel):
    """
    Batch of answers for one context.

    couple_id = None means solo mode.
    """

    model_config = ConfigDict(extra="forbid")

    couple_id: uuid.UUID | None = None
    answers: list[AnswerIn]


class AnswerRead(SQLModel):
    question_id: uuid.UUID
    couple_id: uuid.UUID | None = None
    answer: str
    updated_at: datetime


class SaveAnswersResult(SQLModel):
    count: int
    saved: list[AnswerRead]


# ----- Progress / status -----


class CategoryProgress(SQLModel):
    """
    Derived progress for one (user, context, category).

    degraded=True means the store failed for this category and the
    numbers are a zero fallback, not real progress.
    """

    category_id: str
    questions_answered: int = 0
    total_questions: int = 0
    percentage: int = 0
    degraded: bool = False


class QuizStatusRead(SQLModel):
    category_id: str
    couple_id: uuid.UUID | None = None
    status: QuizStatus
    self_progress: CategoryProgress
    partner_progress: CategoryProgress | None = None
    both_completed: bool = False
    can_compare: bool = False


class CompletionRead(SQLModel):
    couple_id: uuid.UUID
    category_id: str
    completed: bool


class ComparisonItem(SQLModel):
    question_id: uuid.UUID
    question_text: str
    question_type: QuestionType
    your_answer: str | None = None
    partner_answer: str | None = None


class ComparisonRead(SQLModel):
    couple_id: uuid.UUID
    category_id: str
    items: list[ComparisonItem]


class ResetResult(SQLModel):
    category_id: str
    couple_id: uuid.UUID | None = None
    deleted: int
