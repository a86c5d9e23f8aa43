# couplequiz/models/quiz.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Index, UniqueConstraint, text as sql_text
from sqlmodel import SQLModel, Field

# multiple_choice | scale | text | yes_no
QUESTION_TYPES = ("multiple_choice", "scale", "text", "yes_no")


class QuizCategory(SQLModel, table=True):
    """
    Quiz category (communication, values, hobbies, ...).

    id is a human readable slug so clients can reference categories
    directly, e.g. "values".
    """

    __tablename__ = "quiz_categories"

    id: str = Field(
        primary_key=True,
        max_length=50,
        description="Slug, e.g. 'values'",
    )

    name: str = Field(max_length=100)

    description: str | None = None
    icon: str | None = Field(default=None, max_length=20)
    color: str | None = Field(default=None, max_length=20)

    sort_order: int = Field(
        default=0,
        ge=0,
        description="Ordering index in the catalogue",
    )


class Question(SQLModel, table=True):
    """
    A quiz question.

    A question is *active* only when is_active is true AND
    release_date <= now. Inactive or unreleased questions are ignored
    everywhere: catalogue, progress and completion checks.
    """

    __tablename__ = "questions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    category_id: str = Field(
        foreign_key="quiz_categories.id",
        index=True,
    )

    text: str

    type: str = Field(
        index=True,
        description="multiple_choice | scale | text | yes_no",
    )

    options: list[str] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="Choices for multiple_choice questions",
    )

    min_scale: int | None = None
    max_scale: int | None = None

    scale_labels: dict[str, str] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description='{"min": "...", "max": "..."}',
    )

    is_active: bool = Field(default=True, index=True)

    release_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Question is hidden before this instant (UTC)",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class UserAnswer(SQLModel, table=True):
    """
    One answer per (user_id, question_id, couple_id).

    couple_id is NULL for solo answers. A plain UNIQUE constraint treats
    NULLs as distinct, so solo rows get their own partial unique index on
    (user_id, question_id). Together they make resubmission an overwrite.

    The answer is always stored as text (scale values are stringified).
    """

    __tablename__ = "user_answers"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "question_id", "couple_id",
            name="uq_user_answers_user_question_couple",
        ),
        Index(
            "uq_user_answers_user_question_solo",
            "user_id",
            "question_id",
            unique=True,
            postgresql_where=sql_text("couple_id IS NULL"),
            sqlite_where=sql_text("couple_id IS NULL"),
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    question_id: uuid.UUID = Field(
        foreign_key="questions.id",
        index=True,
    )

    couple_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="couples.id",
        index=True,
        description="NULL = solo mode",
    )

    answer: str

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
