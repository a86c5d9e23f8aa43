# couplequiz/repositories/couple_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import case, literal, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from couplequiz.models.couple import Couple


class CoupleRepository:
    """
    Data access layer for Couple.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - The atomic claim (single conditional UPDATE)
      - No FastAPI, no business logic
    """

    # ----- Reads -----

    def get_by_id(self, session: Session, couple_id: uuid.UUID) -> Couple | None:
        return session.get(Couple, couple_id)

    def get_pending_for_user(
        self, session: Session, user_id: uuid.UUID
    ) -> Couple | None:
        """Unclaimed invite created by user_id, if any."""
        stmt = select(Couple).where(
            Couple.user1_id == user_id,
            Couple.user2_id.is_(None),
            Couple.linking_code.is_not(None),
        )
        return session.exec(stmt).first()

    def get_pending_by_code(self, session: Session, code: str) -> Couple | None:
        stmt = select(Couple).where(Couple.linking_code == code)
        return session.exec(stmt).first()

    def get_linked_by_consumed_code(
        self, session: Session, code: str
    ) -> Couple | None:
        stmt = (
            select(Couple)
            .where(Couple.consumed_code == code, Couple.user2_id.is_not(None))
            .order_by(Couple.linked_at.desc())
        )
        return session.exec(stmt).first()

    def code_in_use(self, session: Session, code: str) -> bool:
        """True if the code is pending or was consumed before."""
        stmt = select(Couple.id).where(
            or_(Couple.linking_code == code, Couple.consumed_code == code)
        )
        return session.exec(stmt).first() is not None

    def list_linked_for_user(
        self, session: Session, user_id: uuid.UUID
    ) -> list[Couple]:
        """Linked couples where user_id is either member (never pending rows)."""
        stmt = (
            select(Couple)
            .where(
                or_(Couple.user1_id == user_id, Couple.user2_id == user_id),
                Couple.user2_id.is_not(None),
            )
            .order_by(Couple.linked_at)
        )
        return session.exec(stmt).all()

    # ----- Writes -----

    def create_pending(
        self, session: Session, user_id: uuid.UUID, code: str
    ) -> Couple:
        """
        Insert a pending couple.

        Raises:
            IntegrityError: if the code collides with another pending
            invite (UNIQUE linking_code). The session is rolled back first.
        """
        couple = Couple(user1_id=user_id, linking_code=code)
        session.add(couple)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        session.refresh(couple)
        return couple

    def claim(
        self, session: Session, code: str, claimer_id: uuid.UUID
    ) -> uuid.UUID | None:
        """
        Atomically claim a pending invite.

        One UPDATE does everything:
          - matches only pending rows for this code not created by claimer
          - stores the pair as (smaller id, larger id)
          - consumes the code (linking_code -> NULL, consumed_code -> code)

        Returns:
            The couple id if this call won, else None (no row matched).
        """
        table = Couple.__table__
        claimer = literal(claimer_id, type_=table.c.user1_id.type)
        inviter_first = table.c.user1_id < claimer

        stmt = (
            update(table)
            .where(
                table.c.linking_code == code,
                table.c.user2_id.is_(None),
                table.c.user1_id != claimer,
            )
            .values(
                user1_id=case((inviter_first, table.c.user1_id), else_=claimer),
                user2_id=case((inviter_first, claimer), else_=table.c.user1_id),
                linking_code=None,
                consumed_code=code,
                linked_at=datetime.now(timezone.utc),
            )
            .returning(table.c.id)
        )
        try:
            row = session.execute(stmt).first()
            session.commit()
        except Exception:
            session.rollback()
            raise
        session.expire_all()
        return row[0] if row else None

    def delete(self, session: Session, couple: Couple) -> None:
        session.delete(couple)
        session.commit()
