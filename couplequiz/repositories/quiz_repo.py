# couplequiz/repositories/quiz_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, select

from couplequiz.models.quiz import Question, QuizCategory, UserAnswer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _context_filter(couple_id: uuid.UUID | None):
    """Answer scope: solo rows have couple_id NULL."""
    if couple_id is None:
        return UserAnswer.couple_id.is_(None)
    return UserAnswer.couple_id == couple_id


class QuizRepository:
    """
    Data access layer for categories, questions and answers.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ----- Categories -----

    def list_categories(self, session: Session) -> list[QuizCategory]:
        stmt = select(QuizCategory).order_by(QuizCategory.sort_order, QuizCategory.id)
        return session.exec(stmt).all()

    def get_category(self, session: Session, category_id: str) -> QuizCategory | None:
        return session.get(QuizCategory, category_id)

    # ----- Questions -----

    def list_active_questions(
        self,
        session: Session,
        category_id: str | None = None,
        now: datetime | None = None,
    ) -> list[Question]:
        """Questions with is_active = true and release_date <= now."""
        stmt = select(Question).where(
            Question.is_active == True,  # noqa: E712
            Question.release_date <= (now or _utcnow()),
        )
        if category_id is not None:
            stmt = stmt.where(Question.category_id == category_id)
        stmt = stmt.order_by(Question.release_date, Question.created_at)
        return session.exec(stmt).all()

    def active_question_ids(
        self,
        session: Session,
        category_id: str,
        now: datetime | None = None,
    ) -> list[uuid.UUID]:
        stmt = select(Question.id).where(
            Question.category_id == category_id,
            Question.is_active == True,  # noqa: E712
            Question.release_date <= (now or _utcnow()),
        )
        return session.exec(stmt).all()

    def all_question_ids(self, session: Session, category_id: str) -> list[uuid.UUID]:
        """Every question of the category, active or not."""
        stmt = select(Question.id).where(Question.category_id == category_id)
        return session.exec(stmt).all()

    def get_questions_by_ids(
        self, session: Session, question_ids: list[uuid.UUID]
    ) -> list[Question]:
        if not question_ids:
            return []
        stmt = select(Question).where(Question.id.in_(question_ids))
        return session.exec(stmt).all()

    # ----- Answers -----

    def answered_question_ids(
        self,
        session: Session,
        user_id: uuid.UUID,
        couple_id: uuid.UUID | None,
        question_ids: list[uuid.UUID],
    ) -> set[uuid.UUID]:
        """Distinct question ids the user answered in this context, within question_ids."""
        if not question_ids:
            return set()
        stmt = (
            select(UserAnswer.question_id)
            .where(
                UserAnswer.user_id == user_id,
                _context_filter(couple_id),
                UserAnswer.question_id.in_(question_ids),
            )
            .distinct()
        )
        return set(session.exec(stmt).all())

    def list_answers(
        self,
        session: Session,
        couple_id: uuid.UUID | None,
        question_ids: list[uuid.UUID],
        user_ids: list[uuid.UUID],
    ) -> list[UserAnswer]:
        if not question_ids or not user_ids:
            return []
        stmt = select(UserAnswer).where(
            _context_filter(couple_id),
            UserAnswer.question_id.in_(question_ids),
            UserAnswer.user_id.in_(user_ids),
        )
        return session.exec(stmt).all()

    def upsert_answers(
        self,
        session: Session,
        user_id: uuid.UUID,
        couple_id: uuid.UUID | None,
        answers: dict[uuid.UUID, str],
    ) -> list[UserAnswer]:
        """
        Insert or overwrite answers keyed by (user_id, question_id, couple_id).

        All rows go out in one INSERT .. ON CONFLICT DO UPDATE and one
        transaction: either every answer is stored or none is.

        Args:
            answers: question_id -> normalized answer text. Keys must be
              unique (Postgres rejects a statement touching a row twice).

        Returns:
            The persisted rows, re-read from the store.
        """
        now = _utcnow()
        rows = [
            {
                "id": uuid.uuid4(),
                "user_id": user_id,
                "question_id": question_id,
                "couple_id": couple_id,
                "answer": value,
                "created_at": now,
                "updated_at": now,
            }
            for question_id, value in answers.items()
        ]

        table = UserAnswer.__table__
        stmt = self._dialect_insert(session)(table).values(rows)
        if couple_id is None:
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.user_id, table.c.question_id],
                index_where=table.c.couple_id.is_(None),
                set_={"answer": stmt.excluded.answer, "updated_at": stmt.excluded.updated_at},
            )
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.user_id, table.c.question_id, table.c.couple_id],
                set_={"answer": stmt.excluded.answer, "updated_at": stmt.excluded.updated_at},
            )

        try:
            session.execute(stmt)
            session.commit()
        except Exception:
            session.rollback()
            raise

        session.expire_all()
        return self.list_answers(session, couple_id, list(answers), [user_id])

    def delete_answers(
        self,
        session: Session,
        question_ids: list[uuid.UUID],
        couple_id: uuid.UUID | None,
        user_id: uuid.UUID | None = None,
    ) -> int:
        """
        Delete answers for the given questions in one context.

        user_id=None deletes every member's rows (couple reset).
        Returns the number of rows removed.
        """
        if not question_ids:
            return 0
        table = UserAnswer.__table__
        stmt = delete(table).where(table.c.question_id.in_(question_ids))
        if couple_id is None:
            stmt = stmt.where(table.c.couple_id.is_(None))
        else:
            stmt = stmt.where(table.c.couple_id == couple_id)
        if user_id is not None:
            stmt = stmt.where(table.c.user_id == user_id)

        try:
            result = session.execute(stmt)
            session.commit()
        except Exception:
            session.rollback()
            raise
        session.expire_all()
        return result.rowcount or 0

    # ----- helpers -----

    @staticmethod
    def _dialect_insert(session: Session):
        """Pick the INSERT construct that supports ON CONFLICT for this engine."""
        name = session.get_bind().dialect.name
        if name == "postgresql":
            return postgresql.insert
        if name == "sqlite":
            return sqlite.insert
        raise NotImplementedError(f"Upsert not supported on dialect {name!r}")
