# couplequiz/schemas/profile.py
import uuid

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


def _normalize_name(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("name cannot be empty")
    return v


class ProfileRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class PartnerRead(SQLModel):
    """The other member of a couple, as seen by the viewer."""

    id: uuid.UUID
    first_name: str | None = None
    last_name: str | None = None


class ProfileUpdate(SQLModel):
    """
    Partial profile update.

    Omitted (None) fields are left unchanged; blank names are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)

    @field_validator("first_name", "last_name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        return _normalize_name(v)
