"""Domain value objects for Spoonjoy."""

from spoon.domain.value.identifiers import AccountId, ExternalIdentityId
from spoon.domain.value.types import (
    AuthProvider,
    ConflictKind,
    ResolutionAction,
    ResolutionErrorCode,
    Username,
    VerifiedAssertion,
)

__all__ = [
    # Identifiers
    "AccountId",
    "ExternalIdentityId",
    # Types
    "AuthProvider",
    "ConflictKind",
    "ResolutionAction",
    "ResolutionErrorCode",
    "Username",
    "VerifiedAssertion",
]
