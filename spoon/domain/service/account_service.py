"""Account domain service."""

import logfire

from spoon.config import IdentitySettings
from spoon.domain.error import AccountCreationError, NotFoundError
from spoon.domain.model import (
    Account,
    AccountDraft,
    ExternalIdentity,
    ExternalIdentityDraft,
)
from spoon.domain.repository import IdentityStore
from spoon.domain.value import (
    AccountId,
    ResolutionErrorCode,
    VerifiedAssertion,
)

from .base import Service
from .naming import derive_provider_display_name, derive_username_candidate


class AccountService(Service):
    """Domain service for creating accounts and attaching identities.

    Owns the validation that turns a verified assertion into account and
    identity drafts. Every write goes through the identity store, which
    enforces the uniqueness rules.
    """

    def __init__(
        self, identity_store: IdentityStore, identity_settings: IdentitySettings
    ) -> None:
        """Initialize account service.

        Args:
            identity_store: Account and identity persistence
            identity_settings: Identity resolution configuration
        """
        self.identity_store = identity_store
        self.identity_settings = identity_settings

    async def get_by_id(self, account_id: AccountId) -> Account:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity

        Raises:
            NotFoundError: If account not found
        """
        with logfire.span("account_service.get_by_id", account_id=str(account_id)):
            account = await self.identity_store.find_account_by_id(account_id)
            if not account:
                logfire.warn("Account not found", account_id=str(account_id))
                raise NotFoundError("Account", str(account_id))
            return account

    async def get_linked_identities(
        self, account_id: AccountId
    ) -> list[ExternalIdentity]:
        """Get all identities linked to an account, oldest first."""
        with logfire.span(
            "account_service.get_linked_identities", account_id=str(account_id)
        ):
            identities = await self.identity_store.list_identities_for_account(
                account_id
            )
            logfire.info(
                "Identities retrieved for account",
                account_id=str(account_id),
                count=len(identities),
            )
            return identities

    def build_identity_draft(self, assertion: VerifiedAssertion) -> ExternalIdentityDraft:
        """Identity draft for an assertion."""
        return ExternalIdentityDraft(
            provider=assertion.provider,
            provider_user_id=assertion.provider_user_id,
            provider_display_name=derive_provider_display_name(assertion),
        )

    def build_signup(
        self, assertion: VerifiedAssertion
    ) -> tuple[AccountDraft, ExternalIdentityDraft]:
        """Build the account and first identity for an OAuth signup.

        Args:
            assertion: Verified provider assertion

        Returns:
            Account draft with a username candidate, and its identity draft

        Raises:
            AccountCreationError: If the assertion carries no email
        """
        if not assertion.email:
            raise AccountCreationError(
                ResolutionErrorCode.EMAIL_REQUIRED,
                "An email address is required to create an account. "
                f"Share your email with {assertion.provider.display_name} "
                "or sign up with an email and password.",
            )

        account = AccountDraft(
            email=assertion.email,
            username=derive_username_candidate(
                assertion, self.identity_settings.username_max_length
            ),
            avatar_url=assertion.avatar_url,
        )
        return account, self.build_identity_draft(assertion)

    async def create_from_assertion(self, assertion: VerifiedAssertion) -> Account:
        """Create a new account holding the asserted identity.

        Args:
            assertion: Verified provider assertion

        Returns:
            The created account

        Raises:
            AccountCreationError: If the assertion cannot produce an account
            IdentityConflictError: If a uniqueness constraint fired
            StoreUnavailableError: If storage failed
        """
        account_draft, identity_draft = self.build_signup(assertion)
        with logfire.span(
            "account_service.create_from_assertion",
            provider=assertion.provider.value,
        ):
            account = await self.identity_store.create_account_with_identity(
                account_draft, identity_draft
            )
            logfire.info(
                "Account created",
                account_id=str(account.id),
                provider=assertion.provider.value,
            )
            return account

    async def link_assertion(
        self, account_id: AccountId, assertion: VerifiedAssertion
    ) -> ExternalIdentity:
        """Attach the asserted identity to an existing account.

        Raises:
            NotFoundError: If the account does not exist
            IdentityConflictError: If a uniqueness constraint fired
            StoreUnavailableError: If storage failed
        """
        with logfire.span(
            "account_service.link_assertion",
            account_id=str(account_id),
            provider=assertion.provider.value,
        ):
            identity = await self.identity_store.attach_identity(
                account_id, self.build_identity_draft(assertion)
            )
            logfire.info(
                "Identity linked",
                account_id=str(account_id),
                identity_id=str(identity.id),
                provider=identity.provider.value,
            )
            return identity
