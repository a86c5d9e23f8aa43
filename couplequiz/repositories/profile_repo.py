# couplequiz/repositories/profile_repo.py
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from couplequiz.models.profile import Profile


class ProfileRepository:
    """
    Data access layer for Profile.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> Profile | None:
        """Return a Profile by primary key, or None if not found."""
        return session.get(Profile, user_id)

    def list_by_ids(
        self, session: Session, user_ids: list[uuid.UUID]
    ) -> list[Profile]:
        """Batch lookup used to hydrate partner info."""
        if not user_ids:
            return []
        stmt = select(Profile).where(Profile.id.in_(user_ids))
        return session.exec(stmt).all()

    def get_or_create(
        self, session: Session, user_id: uuid.UUID, email: str | None
    ) -> Profile:
        """
        Insert-if-absent.

        Two first requests from the same new principal may race on the
        insert; the loser rolls back and reads the winner's row.
        """
        profile = self.get_by_id(session, user_id)
        if profile is not None:
            return profile

        profile = Profile(id=user_id, email=email)
        session.add(profile)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            existing = self.get_by_id(session, user_id)
            if existing is None:
                raise
            return existing
        session.refresh(profile)
        return profile

    def update(self, session: Session, profile: Profile) -> Profile:
        """Persist changes to an existing Profile."""
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile
