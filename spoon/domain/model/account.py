"""Account aggregate root.

An account is created once, either by local signup or by the first OAuth
signup, and can hold at most one external identity per provider.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from spoon.domain.model.common import DomainModel, utcnow
from spoon.domain.value import AccountId, Username


def normalize_email(email: str) -> str:
    """Case-normalize an email for storage and comparison."""
    return email.strip().lower()


class Account(DomainModel):
    """Spoonjoy user account."""

    id: AccountId
    email: str  # Stored lower-cased; unique case-insensitively
    username: Username
    has_password: bool = False  # Local password credential present
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("email")
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)


class AccountDraft(DomainModel):
    """Account about to be created from an OAuth signup.

    ``username`` is only a candidate; the identity store makes it unique
    at creation time.
    """

    email: str
    username: Username
    avatar_url: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)
