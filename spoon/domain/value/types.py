"""Domain value objects for Spoonjoy identity resolution.

Value objects are immutable and defined by their values, not identity.
They encapsulate validation rules for the data that crosses the OAuth
boundary.
"""

import re
from enum import Enum

from pydantic import Field, field_validator

from spoon.domain.value.common import RootValueObject, ValueObject


class AuthProvider(str, Enum):
    """Supported external identity providers."""

    GOOGLE = "google"
    APPLE = "apple"

    @property
    def display_name(self) -> str:
        """Human-readable provider name for messages."""
        return self.value.capitalize()


class ResolutionAction(str, Enum):
    """What a successful resolution did."""

    ACCOUNT_CREATED = "account_created"
    LOGGED_IN = "logged_in"
    IDENTITY_LINKED = "identity_linked"


class ResolutionErrorCode(str, Enum):
    """Stable failure codes returned to the caller."""

    ACCOUNT_EXISTS = "account_exists"
    PROVIDER_ALREADY_LINKED = "provider_already_linked"
    PROVIDER_ACCOUNT_TAKEN = "provider_account_taken"
    EMAIL_REQUIRED = "email_required"
    USERNAME_UNAVAILABLE = "username_unavailable"
    ACCOUNT_NOT_FOUND = "account_not_found"
    INFRASTRUCTURE_ERROR = "infrastructure_error"


class ConflictKind(str, Enum):
    """Which storage-level uniqueness constraint rejected a write."""

    EMAIL = "email"
    USERNAME = "username"
    PROVIDER_SUBJECT = "provider_subject"
    ACCOUNT_PROVIDER = "account_provider"


class Username(RootValueObject[str]):
    """Account username.

    Lowercase alphanumeric words joined by single hyphens, e.g.
    ``jane-doe`` or ``jane-doe-2``.
    """

    @field_validator("root")
    @classmethod
    def validate_username_format(cls, v: str) -> str:
        """Validate username format."""
        if not re.match(r"^[a-z0-9]+(?:-[a-z0-9]+)*$", v):
            raise ValueError(
                "Username must be lowercase alphanumeric with single hyphens"
            )
        if len(v) > 64:
            raise ValueError("Username must be 1-64 characters")
        return v


class VerifiedAssertion(ValueObject):
    """Verified claim from an OAuth provider about who a person is.

    Produced by the provider handshake after token verification and
    trusted as-is. Blank strings are normalized to ``None`` so every
    fallback chain sees an explicit absence.
    """

    provider: AuthProvider
    provider_user_id: str = Field(min_length=1)  # Stable subject id from provider
    email: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None

    @field_validator(
        "email", "given_name", "family_name", "full_name", "avatar_url", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Strip optional strings and treat blank ones as absent."""
        if v is None:
            return None
        v = v.strip()
        return v or None
