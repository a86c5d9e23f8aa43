# couplequiz/services/profile_service.py
import logging
import uuid

from sqlmodel import Session

from couplequiz.core.errors import NotAuthenticated, StoreUnavailable
from couplequiz.core.supabase_client import supabase_admin
from couplequiz.models.profile import Profile
from couplequiz.repositories.profile_repo import ProfileRepository
from couplequiz.schemas.profile import ProfileUpdate

logger = logging.getLogger(__name__)


class ProfileService:
    """
    Identity & profile glue.

    Responsibilities:
      - lazily provision the profile of a newly seen principal
      - profile edits (first/last name)
      - sign out through Supabase Auth
    """

    def __init__(self, repo: ProfileRepository):
        self.repo = repo

    def ensure_profile(
        self, session: Session, user_id: uuid.UUID, email: str | None
    ) -> Profile:
        """Return the principal's profile, creating it on first sight."""
        profile = self.repo.get_or_create(session, user_id, email)
        if email and profile.email != email:
            # Email changed on the auth side; mirror it.
            profile.email = email
            profile = self.repo.update(session, profile)
        return profile

    def get_profile(self, session: Session, user_id: uuid.UUID) -> Profile:
        profile = self.repo.get_by_id(session, user_id)
        if profile is None:
            raise NotAuthenticated("Unknown principal")
        return profile

    def update_profile(
        self,
        session: Session,
        current: Profile,
        payload: ProfileUpdate,
    ) -> Profile:
        """
        Partial update. Only provided fields change.
        """
        if payload.first_name is not None:
            current.first_name = payload.first_name
        if payload.last_name is not None:
            current.last_name = payload.last_name
        return self.repo.update(session, current)

    def sign_out(self, access_token: str) -> None:
        """
        Revoke the Supabase session behind access_token (all devices).

        Raises:
            StoreUnavailable: if Supabase Auth rejects or cannot be reached.
        """
        try:
            supabase_admin().auth.admin.sign_out(access_token, "global")
        except Exception as exc:
            logger.error("Supabase sign-out failed: %s", exc)
            raise StoreUnavailable("Could not sign out, please retry") from exc
