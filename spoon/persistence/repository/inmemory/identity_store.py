"""In-memory identity store for testing."""

from typing import Optional
from uuid import uuid4

from spoon.domain.error import IdentityConflictError, NotFoundError
from spoon.domain.model import (
    Account,
    AccountDraft,
    ExternalIdentity,
    ExternalIdentityDraft,
    normalize_email,
)
from spoon.domain.repository import IdentityStore
from spoon.domain.service.naming import next_available_username
from spoon.domain.value import (
    AccountId,
    AuthProvider,
    ConflictKind,
    ExternalIdentityId,
    Username,
)


class InMemoryIdentityStore(IdentityStore):
    """In-memory implementation of IdentityStore for testing.

    Writes check every constraint before mutating anything, and never
    await in between, so each write is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._accounts: dict[AccountId, Account] = {}
        self._identities: list[ExternalIdentity] = []

    def add_account(self, account: Account) -> Account:
        """Seed an account created outside OAuth (e.g. password signup)."""
        if self._email_taken(account.email):
            raise IdentityConflictError(ConflictKind.EMAIL)
        if self._username_taken(account.username.root):
            raise IdentityConflictError(ConflictKind.USERNAME)
        self._accounts[account.id] = account
        return account

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    @property
    def identities(self) -> list[ExternalIdentity]:
        return list(self._identities)

    async def find_account_by_id(self, account_id: AccountId) -> Optional[Account]:
        """Find an account by ID."""
        return self._accounts.get(account_id)

    async def find_account_by_email(self, email: str) -> Optional[Account]:
        """Find an account by email, ignoring case."""
        wanted = normalize_email(email)
        for account in self._accounts.values():
            if account.email == wanted:
                return account
        return None

    async def find_account_by_identity(
        self, provider: AuthProvider, provider_user_id: str
    ) -> Optional[Account]:
        """Find the account owning an external identity."""
        identity = self._find_identity(provider, provider_user_id)
        if not identity:
            return None
        return self._accounts.get(identity.account_id)

    async def find_identity(
        self, provider: AuthProvider, provider_user_id: str
    ) -> Optional[ExternalIdentity]:
        """Find an identity by provider and subject id."""
        return self._find_identity(provider, provider_user_id)

    async def find_identity_for_account(
        self, account_id: AccountId, provider: AuthProvider
    ) -> Optional[ExternalIdentity]:
        """Find the identity an account holds for a provider."""
        for identity in self._identities:
            if identity.account_id == account_id and identity.provider == provider:
                return identity
        return None

    async def list_identities_for_account(
        self, account_id: AccountId
    ) -> list[ExternalIdentity]:
        """Find all identities for an account."""
        matches = [i for i in self._identities if i.account_id == account_id]
        matches.sort(key=lambda i: i.created_at)
        return matches

    async def create_account_with_identity(
        self, account: AccountDraft, identity: ExternalIdentityDraft
    ) -> Account:
        """Create account and first identity together."""
        if self._email_taken(account.email):
            raise IdentityConflictError(ConflictKind.EMAIL)
        if self._find_identity(identity.provider, identity.provider_user_id):
            raise IdentityConflictError(ConflictKind.PROVIDER_SUBJECT)

        username = next_available_username(
            account.username.root,
            (a.username.root for a in self._accounts.values()),
        )
        created = Account(
            id=AccountId(uuid4()),
            email=account.email,
            username=Username(username),
            has_password=False,
            avatar_url=account.avatar_url,
        )
        self._accounts[created.id] = created
        self._identities.append(self._new_identity(created.id, identity))
        return created

    async def attach_identity(
        self, account_id: AccountId, identity: ExternalIdentityDraft
    ) -> ExternalIdentity:
        """Attach an identity to an existing account."""
        if account_id not in self._accounts:
            raise NotFoundError("Account", str(account_id))
        if self._find_identity(identity.provider, identity.provider_user_id):
            raise IdentityConflictError(ConflictKind.PROVIDER_SUBJECT)
        if any(
            i.account_id == account_id and i.provider == identity.provider
            for i in self._identities
        ):
            raise IdentityConflictError(ConflictKind.ACCOUNT_PROVIDER)

        created = self._new_identity(account_id, identity)
        self._identities.append(created)
        return created

    def _find_identity(
        self, provider: AuthProvider, provider_user_id: str
    ) -> Optional[ExternalIdentity]:
        for identity in self._identities:
            if (
                identity.provider == provider
                and identity.provider_user_id == provider_user_id
            ):
                return identity
        return None

    def _email_taken(self, email: str) -> bool:
        wanted = normalize_email(email)
        return any(a.email == wanted for a in self._accounts.values())

    def _username_taken(self, username: str) -> bool:
        return any(a.username.root == username for a in self._accounts.values())

    @staticmethod
    def _new_identity(
        account_id: AccountId, draft: ExternalIdentityDraft
    ) -> ExternalIdentity:
        return ExternalIdentity(
            id=ExternalIdentityId(uuid4()),
            account_id=account_id,
            provider=draft.provider,
            provider_user_id=draft.provider_user_id,
            provider_display_name=draft.provider_display_name,
        )
