# couplequiz/services/quiz_service.py
import logging
import math
import uuid
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from couplequiz.core.errors import (
    CategoryNotFound,
    ComparisonLocked,
    EmptyAnswerBatch,
    InvalidAnswer,
    SaveFailed,
)
from couplequiz.models.quiz import Question
from couplequiz.repositories.couple_repo import CoupleRepository
from couplequiz.repositories.quiz_repo import QuizRepository
from couplequiz.schemas.quiz import (
    AnswerIn,
    AnswerRead,
    CategoryProgress,
    CategoryRead,
    ChoiceAnswerIn,
    ComparisonItem,
    ComparisonRead,
    QuestionRead,
    QuizStatusRead,
    SaveAnswersResult,
    ScaleAnswerIn,
    TextAnswerIn,
    YesNoAnswerIn,
)
from couplequiz.services.pairing_service import PairingService

logger = logging.getLogger(__name__)

# answer kind -> question type it may answer
KIND_TO_QUESTION_TYPE = {
    "scale": "scale",
    "text": "text",
    "choice": "multiple_choice",
    "yes_no": "yes_no",
}


def percentage(answered: int, total: int) -> int:
    """round(100 * answered / total), halves rounded up; 0 when total is 0."""
    if total == 0:
        return 0
    return math.floor(100 * answered / total + 0.5)


def normalize_answer(question: Question, answer: AnswerIn) -> str:
    """
    Validate an answer against its question and return the stored text.

      scale   -> str(int), within [min_scale, max_scale] when set
      yes_no  -> "yes" | "no"
      choice  -> one of question.options when options are set
      text    -> stripped, non-empty
    """
    expected = KIND_TO_QUESTION_TYPE[answer.kind]
    if question.type != expected:
        raise InvalidAnswer(
            f"Question {question.id} is '{question.type}', got a '{answer.kind}' answer"
        )

    if isinstance(answer, ScaleAnswerIn):
        if question.min_scale is not None and answer.value < question.min_scale:
            raise InvalidAnswer(f"Answer for {question.id} is below {question.min_scale}")
        if question.max_scale is not None and answer.value > question.max_scale:
            raise InvalidAnswer(f"Answer for {question.id} is above {question.max_scale}")
        return str(answer.value)

    if isinstance(answer, YesNoAnswerIn):
        return "yes" if answer.value else "no"

    if isinstance(answer, ChoiceAnswerIn):
        value = answer.value.strip()
        if question.options and value not in question.options:
            raise InvalidAnswer(f"'{value}' is not an option of question {question.id}")
        return value

    if isinstance(answer, TextAnswerIn):
        value = answer.value.strip()
        if not value:
            raise InvalidAnswer(f"Answer for {question.id} cannot be empty")
        return value

    raise InvalidAnswer(f"Unsupported answer kind '{answer.kind}'")


class QuizService:
    """
    Quiz progress & answers.

    Responsibilities:
      - idempotent answer upsert per (user, question, context)
      - per-category progress (solo or couple context)
      - "completed by both partners" gating for comparison
      - resets (couple reset clears both partners)

    Nothing here is stored as state: progress and status are always
    re-derived from the answer rows.
    """

    def __init__(
        self,
        quiz_repo: QuizRepository,
        couple_repo: CoupleRepository,
        pairing: PairingService,
    ):
        self.quiz_repo = quiz_repo
        self.couple_repo = couple_repo
        self.pairing = pairing

    # ---- catalogue ----

    def get_quiz_catalogue(
        self, session: Session, now: datetime | None = None
    ) -> list[CategoryRead]:
        """All categories with their active questions only."""
        categories = self.quiz_repo.list_categories(session)
        by_category: dict[str, list[QuestionRead]] = {c.id: [] for c in categories}

        for q in self.quiz_repo.list_active_questions(session, now=now):
            if q.category_id in by_category:
                by_category[q.category_id].append(
                    QuestionRead(
                        id=q.id,
                        category_id=q.category_id,
                        text=q.text,
                        type=q.type,
                        options=q.options,
                        min_scale=q.min_scale,
                        max_scale=q.max_scale,
                        scale_labels=q.scale_labels,
                        release_date=q.release_date,
                    )
                )

        return [
            CategoryRead(
                id=c.id,
                name=c.name,
                description=c.description,
                icon=c.icon,
                color=c.color,
                questions=by_category[c.id],
            )
            for c in categories
        ]

    def require_category(self, session: Session, category_id: str) -> None:
        if self.quiz_repo.get_category(session, category_id) is None:
            raise CategoryNotFound()

    # ---- answers ----

    def save_answers(
        self,
        session: Session,
        user_id: uuid.UUID,
        couple_id: uuid.UUID | None,
        answers: list[AnswerIn],
    ) -> SaveAnswersResult:
        """
        Upsert a batch of answers for one context.

        A question answered twice in the same batch keeps the last value.

        Raises:
            EmptyAnswerBatch: no answers given.
            CoupleNotFound: couple context the caller is not linked in.
            InvalidAnswer: unknown question or answer/type mismatch.
            SaveFailed: the store rejected the batch (nothing was written).
        """
        if not answers:
            raise EmptyAnswerBatch()

        if couple_id is not None:
            self.pairing.get_couple_for_member(session, user_id, couple_id)

        question_ids = list(dict.fromkeys(a.question_id for a in answers))
        questions = {
            q.id: q for q in self.quiz_repo.get_questions_by_ids(session, question_ids)
        }

        normalized: dict[uuid.UUID, str] = {}
        for answer in answers:
            question = questions.get(answer.question_id)
            if question is None:
                raise InvalidAnswer(f"Unknown question {answer.question_id}")
            normalized[answer.question_id] = normalize_answer(question, answer)

        try:
            rows = self.quiz_repo.upsert_answers(session, user_id, couple_id, normalized)
        except SQLAlchemyError as exc:
            logger.error(
                "Saving %d answers failed for user=%s couple=%s: %s",
                len(normalized), user_id, couple_id, exc,
            )
            raise SaveFailed(saved_question_ids=[]) from exc

        return SaveAnswersResult(
            count=len(rows),
            saved=[
                AnswerRead(
                    question_id=r.question_id,
                    couple_id=r.couple_id,
                    answer=r.answer,
                    updated_at=r.updated_at,
                )
                for r in rows
            ],
        )

    # ---- progress ----

    def _progress_for(
        self,
        session: Session,
        user_id: uuid.UUID,
        couple_id: uuid.UUID | None,
        category_id: str,
        now: datetime | None = None,
    ) -> CategoryProgress:
        question_ids = self.quiz_repo.active_question_ids(session, category_id, now=now)
        answered = self.quiz_repo.answered_question_ids(
            session, user_id, couple_id, question_ids
        )
        total = len(question_ids)
        return CategoryProgress(
            category_id=category_id,
            questions_answered=len(answered),
            total_questions=total,
            percentage=percentage(len(answered), total),
        )

    def get_quiz_progress(
        self,
        session: Session,
        user_id: uuid.UUID,
        couple_id: uuid.UUID | None,
        categories: list[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, CategoryProgress]:
        """
        Progress per category for user_id in the given context.

        categories=None means every category in the catalogue. Each
        category is computed on its own: if the store fails for one, that
        entry falls back to 0 with degraded=True and a warning is logged;
        the others are unaffected.
        """
        if couple_id is not None:
            self.pairing.get_couple_for_member(session, user_id, couple_id)

        if categories is None:
            categories = [c.id for c in self.quiz_repo.list_categories(session)]

        result: dict[str, CategoryProgress] = {}
        for category_id in categories:
            try:
                result[category_id] = self._progress_for(
                    session, user_id, couple_id, category_id, now=now
                )
            except SQLAlchemyError as exc:
                session.rollback()
                logger.warning(
                    "Progress fetch failed for category=%s user=%s couple=%s, "
                    "reporting 0: %s",
                    category_id, user_id, couple_id, exc,
                )
                result[category_id] = CategoryProgress(category_id=category_id, degraded=True)
        return result

    def is_quiz_completed_by_both_partners(
        self,
        session: Session,
        couple_id: uuid.UUID,
        category_id: str,
        now: datetime | None = None,
    ) -> bool:
        """
        True when both members answered every active question of the
        category in this couple's context.

        Unknown or still pending couple -> False.
        No active questions -> True.
        """
        couple = self.couple_repo.get_by_id(session, couple_id)
        if couple is None or not couple.is_linked:
            return False

        question_ids = self.quiz_repo.active_question_ids(session, category_id, now=now)
        total = len(question_ids)
        if total == 0:
            return True

        for member_id in (couple.user1_id, couple.user2_id):
            answered = self.quiz_repo.answered_question_ids(
                session, member_id, couple_id, question_ids
            )
            if len(answered) != total:
                return False
        return True

    def get_quiz_status(
        self,
        session: Session,
        user_id: uuid.UUID,
        couple_id: uuid.UUID | None,
        category_id: str,
        now: datetime | None = None,
    ) -> QuizStatusRead:
        """
        Derived per-category status.

        solo  : not_started -> in_progress -> solo_complete
        couple: not_started -> in_progress -> awaiting_partner -> ready_to_compare

        awaiting_partner becomes ready_to_compare only when the partner
        saves their last answer; callers observe it by polling.
        """
        self.require_category(session, category_id)

        if couple_id is None:
            mine = self._progress_for(session, user_id, None, category_id, now=now)
            complete = mine.total_questions > 0 and mine.questions_answered == mine.total_questions
            if complete:
                status = "solo_complete"
            elif mine.questions_answered == 0:
                status = "not_started"
            else:
                status = "in_progress"
            return QuizStatusRead(
                category_id=category_id,
                status=status,
                self_progress=mine,
                both_completed=False,
                can_compare=False,
            )

        couple = self.pairing.get_couple_for_member(session, user_id, couple_id)
        partner_id = couple.partner_of(user_id)
        mine = self._progress_for(session, user_id, couple_id, category_id, now=now)
        theirs = self._progress_for(session, partner_id, couple_id, category_id, now=now)
        both = self.is_quiz_completed_by_both_partners(session, couple_id, category_id, now=now)

        if both:
            status = "ready_to_compare"
        elif mine.questions_answered == mine.total_questions:
            status = "awaiting_partner"
        elif mine.questions_answered == 0:
            status = "not_started"
        else:
            status = "in_progress"

        return QuizStatusRead(
            category_id=category_id,
            couple_id=couple_id,
            status=status,
            self_progress=mine,
            partner_progress=theirs,
            both_completed=both,
            can_compare=both,
        )

    # ---- comparison ----

    def get_comparison(
        self,
        session: Session,
        user_id: uuid.UUID,
        couple_id: uuid.UUID,
        category_id: str,
        now: datetime | None = None,
    ) -> ComparisonRead:
        """
        Side-by-side answers for every active question of the category.

        Raises:
            CoupleNotFound: caller is not linked in this couple.
            ComparisonLocked: the partners have not both finished.
        """
        self.require_category(session, category_id)
        couple = self.pairing.get_couple_for_member(session, user_id, couple_id)
        if not self.is_quiz_completed_by_both_partners(session, couple_id, category_id, now=now):
            raise ComparisonLocked()

        partner_id = couple.partner_of(user_id)
        questions = self.quiz_repo.list_active_questions(session, category_id, now=now)
        rows = self.quiz_repo.list_answers(
            session, couple_id, [q.id for q in questions], [user_id, partner_id]
        )
        answers = {(r.user_id, r.question_id): r.answer for r in rows}

        return ComparisonRead(
            couple_id=couple_id,
            category_id=category_id,
            items=[
                ComparisonItem(
                    question_id=q.id,
                    question_text=q.text,
                    question_type=q.type,
                    your_answer=answers.get((user_id, q.id)),
                    partner_answer=answers.get((partner_id, q.id)),
                )
                for q in questions
            ],
        )

    # ---- reset ----

    def reset_quiz_answers(
        self,
        session: Session,
        category_id: str,
        couple_id: uuid.UUID | None,
        user_id: uuid.UUID,
    ) -> int:
        """
        Delete answers of a category in one context; returns rows deleted.

        Couple mode wipes BOTH partners' answers for that couple, so a
        retake by either side restarts the pair. Solo mode only touches
        the caller's solo rows.
        """
        if couple_id is not None:
            self.pairing.get_couple_for_member(session, user_id, couple_id)

        question_ids = self.quiz_repo.all_question_ids(session, category_id)
        if couple_id is not None:
            deleted = self.quiz_repo.delete_answers(session, question_ids, couple_id)
        else:
            deleted = self.quiz_repo.delete_answers(session, question_ids, None, user_id=user_id)

        logger.info(
            "Reset %d answers for category=%s couple=%s by user=%s",
            deleted, category_id, couple_id, user_id,
        )
        return deleted
