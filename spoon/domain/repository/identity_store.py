"""Identity store interface."""

from abc import ABC, abstractmethod
from typing import Optional

from spoon.domain.model import (
    Account,
    AccountDraft,
    ExternalIdentity,
    ExternalIdentityDraft,
)
from spoon.domain.value import AccountId, AuthProvider


class IdentityStore(ABC):
    """Persistence boundary for accounts and their external identities.

    Implementations must enforce every uniqueness constraint themselves:
    callers run advisory pre-checks, but under concurrency only the store
    can decide. Writes are atomic and report constraint violations as
    ``IdentityConflictError``; operational failures are reported as
    ``StoreUnavailableError``.
    """

    @abstractmethod
    async def find_account_by_id(self, account_id: AccountId) -> Optional[Account]:
        """Find an account by ID.

        Args:
            account_id: The account's unique identifier

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_account_by_email(self, email: str) -> Optional[Account]:
        """Find an account by email, ignoring case.

        Args:
            email: Email address in any case

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_account_by_identity(
        self, provider: AuthProvider, provider_user_id: str
    ) -> Optional[Account]:
        """Find the account that owns an external identity.

        Args:
            provider: The identity provider
            provider_user_id: The person's subject id on that provider

        Returns:
            The owning account if the identity is linked, None otherwise
        """
        pass

    @abstractmethod
    async def find_identity(
        self, provider: AuthProvider, provider_user_id: str
    ) -> Optional[ExternalIdentity]:
        """Find an external identity by provider and subject id.

        Args:
            provider: The identity provider
            provider_user_id: The person's subject id on that provider

        Returns:
            The identity if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_identity_for_account(
        self, account_id: AccountId, provider: AuthProvider
    ) -> Optional[ExternalIdentity]:
        """Find the identity an account holds for a provider.

        Args:
            account_id: The account's unique identifier
            provider: The identity provider

        Returns:
            The identity if the account has one for this provider, None otherwise
        """
        pass

    @abstractmethod
    async def list_identities_for_account(
        self, account_id: AccountId
    ) -> list[ExternalIdentity]:
        """Get all identities linked to an account, oldest first.

        Args:
            account_id: The account's unique identifier

        Returns:
            List of identities (may be empty)
        """
        pass

    @abstractmethod
    async def create_account_with_identity(
        self, account: AccountDraft, identity: ExternalIdentityDraft
    ) -> Account:
        """Create an account and its first identity in one transaction.

        The draft username is a candidate; the store picks the first free
        name in the sequence ``base``, ``base-1``, ``base-2``, ...

        Args:
            account: Account to create
            identity: First identity of the new account

        Returns:
            The created account

        Raises:
            IdentityConflictError: If the email or the identity is already taken
            StoreUnavailableError: If storage failed for any other reason
        """
        pass

    @abstractmethod
    async def attach_identity(
        self, account_id: AccountId, identity: ExternalIdentityDraft
    ) -> ExternalIdentity:
        """Attach a new identity to an existing account.

        Args:
            account_id: Account that will own the identity
            identity: Identity to attach

        Returns:
            The created identity

        Raises:
            NotFoundError: If the account does not exist
            IdentityConflictError: If the identity is owned elsewhere or the
                account already holds this provider
            StoreUnavailableError: If storage failed for any other reason
        """
        pass
