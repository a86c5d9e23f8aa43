# couplequiz/services/pairing_service.py
import logging
import re
import secrets
import string
import uuid
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from couplequiz.core.errors import (
    AlreadyClaimed,
    CodeGenerationExhausted,
    CodeNotFound,
    CoupleNotFound,
    PendingInviteExists,
    SelfLink,
)
from couplequiz.models.couple import Couple
from couplequiz.repositories.couple_repo import CoupleRepository
from couplequiz.repositories.profile_repo import ProfileRepository
from couplequiz.schemas.couple import CoupleRead, InviteRead
from couplequiz.schemas.profile import PartnerRead

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
CODE_PATTERN = re.compile(rf"[A-Z0-9]{{{CODE_LENGTH}}}")

DEFAULT_MAX_ATTEMPTS = 10


def generate_code() -> str:
    """Uniform 6-char code over [A-Z0-9] (36^6 possibilities)."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class PairingService:
    """
    Business logic for linking two principals into a couple.

    Rules:
      - a principal holds at most one pending invite at a time
      - codes are drawn with bounded retry; never loop forever
      - claiming is one atomic conditional UPDATE in the store
      - self-link, lost race and unknown code are distinct failures
    """

    def __init__(
        self,
        couple_repo: CoupleRepository,
        profile_repo: ProfileRepository,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        code_factory: Callable[[], str] = generate_code,
    ):
        self.couple_repo = couple_repo
        self.profile_repo = profile_repo
        self.max_attempts = max_attempts
        self.code_factory = code_factory

    # ---- invites ----

    def generate_linking_code(self, session: Session, user_id: uuid.UUID) -> InviteRead:
        """
        Create a pending couple for user_id and return its code.

        The pre-check skips codes already pending or consumed. The unique
        indexes still decide concurrent inserts: losing to another pending
        invite of the same user raises PendingInviteExists, any other
        conflict counts as a code collision and we draw again.

        Raises:
            PendingInviteExists: caller already has an unclaimed invite.
            CodeGenerationExhausted: max_attempts draws all collided.
        """
        if self.couple_repo.get_pending_for_user(session, user_id) is not None:
            raise PendingInviteExists()

        for attempt in range(1, self.max_attempts + 1):
            code = self.code_factory()

            if self.couple_repo.code_in_use(session, code):
                logger.warning("Linking code collision (attempt %d/%d)", attempt, self.max_attempts)
                continue

            try:
                couple = self.couple_repo.create_pending(session, user_id, code)
            except IntegrityError:
                # Either the code or the one-pending-per-user index conflicted.
                if self.couple_repo.get_pending_for_user(session, user_id) is not None:
                    logger.info("Concurrent invite by %s already pending", user_id)
                    raise PendingInviteExists()
                logger.warning(
                    "Linking code insert conflict (attempt %d/%d)", attempt, self.max_attempts
                )
                continue

            logger.info("Pending couple %s created by %s", couple.id, user_id)
            return InviteRead(
                couple_id=couple.id,
                linking_code=couple.linking_code,
                created_at=couple.created_at,
            )

        logger.error("Linking code generation exhausted after %d attempts", self.max_attempts)
        raise CodeGenerationExhausted()

    def get_pending_invite(
        self, session: Session, user_id: uuid.UUID
    ) -> InviteRead | None:
        couple = self.couple_repo.get_pending_for_user(session, user_id)
        if couple is None:
            return None
        return InviteRead(
            couple_id=couple.id,
            linking_code=couple.linking_code,
            created_at=couple.created_at,
        )

    def cancel_pending_invite(self, session: Session, user_id: uuid.UUID) -> bool:
        """Delete the caller's unclaimed invite. False if there was none."""
        couple = self.couple_repo.get_pending_for_user(session, user_id)
        if couple is None:
            return False
        self.couple_repo.delete(session, couple)
        logger.info("Pending couple %s canceled by %s", couple.id, user_id)
        return True

    # ---- claim ----

    def claim_linking_code(
        self, session: Session, user_id: uuid.UUID, code: str
    ) -> CoupleRead:
        """
        Link user_id with the creator of `code`.

        Raises:
            CodeNotFound: no pending invite for this code.
            SelfLink: the caller created this invite.
            AlreadyClaimed: someone else consumed the code first.
        """
        code = code.strip().upper()
        if not CODE_PATTERN.fullmatch(code):
            raise CodeNotFound()

        couple_id = self.couple_repo.claim(session, code, user_id)
        if couple_id is None:
            raise self._claim_failure(session, user_id, code)

        logger.info("Couple %s linked by %s", couple_id, user_id)
        couple = self.couple_repo.get_by_id(session, couple_id)
        return self._hydrate(session, user_id, [couple])[0]

    def _claim_failure(self, session: Session, user_id: uuid.UUID, code: str) -> Exception:
        """Explain why the conditional UPDATE matched no row."""
        pending = self.couple_repo.get_pending_by_code(session, code)
        if pending is not None and pending.user1_id == user_id:
            return SelfLink()

        linked = self.couple_repo.get_linked_by_consumed_code(session, code)
        if linked is not None and linked.partner_of(user_id) is None:
            logger.info("Claim of consumed code by %s rejected", user_id)
            return AlreadyClaimed()

        return CodeNotFound()

    # ---- couples ----

    def get_hydrated_couples(self, session: Session, user_id: uuid.UUID) -> list[CoupleRead]:
        """Linked couples of user_id, each with the partner's profile."""
        couples = self.couple_repo.list_linked_for_user(session, user_id)
        return self._hydrate(session, user_id, couples)

    def get_couple_for_member(
        self, session: Session, user_id: uuid.UUID, couple_id: uuid.UUID
    ) -> Couple:
        """
        Return the linked couple if user_id belongs to it.

        Raises:
            CoupleNotFound: unknown, still pending, or not a member.
        """
        couple = self.couple_repo.get_by_id(session, couple_id)
        if couple is None or not couple.is_linked or couple.partner_of(user_id) is None:
            raise CoupleNotFound()
        return couple

    def _hydrate(
        self, session: Session, user_id: uuid.UUID, couples: list[Couple]
    ) -> list[CoupleRead]:
        partner_ids = [c.partner_of(user_id) for c in couples]
        profiles = {
            p.id: p
            for p in self.profile_repo.list_by_ids(
                session, [pid for pid in partner_ids if pid is not None]
            )
        }

        result: list[CoupleRead] = []
        for couple, partner_id in zip(couples, partner_ids):
            profile = profiles.get(partner_id)
            result.append(
                CoupleRead(
                    id=couple.id,
                    partner=PartnerRead(
                        id=partner_id,
                        first_name=profile.first_name if profile else None,
                        last_name=profile.last_name if profile else None,
                    ),
                    linked_at=couple.linked_at,
                )
            )
        return result
