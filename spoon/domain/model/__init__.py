"""Domain model entities for Spoonjoy."""

from spoon.domain.model.account import Account, AccountDraft, normalize_email
from spoon.domain.model.external_identity import (
    ExternalIdentity,
    ExternalIdentityDraft,
)
from spoon.domain.model.resolution import (
    ResolutionFailure,
    ResolutionOutcome,
    ResolutionRequest,
    ResolutionSuccess,
)

__all__ = [
    "Account",
    "AccountDraft",
    "ExternalIdentity",
    "ExternalIdentityDraft",
    "ResolutionFailure",
    "ResolutionOutcome",
    "ResolutionRequest",
    "ResolutionSuccess",
    "normalize_email",
]
