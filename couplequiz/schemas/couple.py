# couplequiz/schemas/couple.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from couplequiz.schemas.profile import PartnerRead


class InviteRead(SQLModel):
    """A pending invitation and its one-time code."""

    couple_id: uuid.UUID
    linking_code: str
    created_at: datetime | None = None


class ClaimRequest(SQLModel):
    """
    Payload for claiming a partner's code.

    The code is trimmed and uppercased; shape is checked in the service
    so a malformed code reads the same as an unknown one.
    """

    model_config = ConfigDict(extra="forbid")

    linking_code: str

    @field_validator("linking_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class CoupleRead(SQLModel):
    """A linked couple from the viewer's point of view."""

    id: uuid.UUID
    partner: PartnerRead
    linked_at: datetime | None = None


class CancelInviteResult(SQLModel):
    canceled: bool
