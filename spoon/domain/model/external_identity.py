"""External identity entity.

Links one person's provider-side identity to exactly one account.
"""

from datetime import datetime

from pydantic import Field

from spoon.domain.model.common import DomainModel, utcnow
from spoon.domain.value import AccountId, AuthProvider, ExternalIdentityId


class ExternalIdentity(DomainModel):
    """OAuth identity linked to an account.

    ``(provider, provider_user_id)`` is globally unique and
    ``(account_id, provider)`` is unique per account.
    """

    id: ExternalIdentityId
    account_id: AccountId
    provider: AuthProvider
    provider_user_id: str  # Permanent subject id assigned by the provider
    provider_display_name: str  # Name or email shown in settings; not matched on
    created_at: datetime = Field(default_factory=utcnow)


class ExternalIdentityDraft(DomainModel):
    """Identity about to be attached to a new or existing account."""

    provider: AuthProvider
    provider_user_id: str = Field(min_length=1)
    provider_display_name: str = Field(min_length=1)
