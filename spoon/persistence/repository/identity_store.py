"""Identity store implementation using SQLAlchemy."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional
from uuid import uuid4

import logfire
from sqlalchemy import func, insert, or_, select
from sqlalchemy.exc import DBAPIError, DisconnectionError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spoon.config import IdentitySettings
from spoon.domain.error import (
    IdentityConflictError,
    NotFoundError,
    StoreUnavailableError,
)
from spoon.domain.model import (
    Account,
    AccountDraft,
    ExternalIdentity,
    ExternalIdentityDraft,
    normalize_email,
)
from spoon.domain.model.common import utcnow
from spoon.domain.repository import IdentityStore
from spoon.domain.service.naming import next_available_username, randomized_username
from spoon.domain.value import (
    AccountId,
    AuthProvider,
    ConflictKind,
    ExternalIdentityId,
    Username,
)
from spoon.persistence.mappers import (
    account_to_dict,
    external_identity_to_dict,
    row_to_account,
    row_to_external_identity,
)
from spoon.persistence.tables import accounts_table, external_identities_table

# PostgreSQL reports the constraint name; SQLite reports the columns
# (or the index name for expression indexes).
_CONFLICT_MARKERS: dict[ConflictKind, tuple[str, ...]] = {
    ConflictKind.EMAIL: ("uq_accounts_email_lower",),
    ConflictKind.USERNAME: ("uq_accounts_username", "accounts.username"),
    ConflictKind.PROVIDER_SUBJECT: (
        "uq_external_identities_subject",
        "external_identities.provider, external_identities.provider_user_id",
    ),
    ConflictKind.ACCOUNT_PROVIDER: (
        "uq_external_identities_account_provider",
        "external_identities.account_id, external_identities.provider",
    ),
}


def classify_integrity_error(error: IntegrityError) -> Optional[ConflictKind]:
    """Map an integrity error to the uniqueness constraint that raised it.

    Args:
        error: Integrity error raised by the driver

    Returns:
        The violated constraint, or None for non-uniqueness violations
    """
    detail = str(error.orig)
    for kind, markers in _CONFLICT_MARKERS.items():
        if any(marker in detail for marker in markers):
            return kind
    return None


@contextmanager
def _translate_store_errors() -> Iterator[None]:
    """Re-raise driver errors as identity store errors."""
    try:
        yield
    except IntegrityError as e:
        kind = classify_integrity_error(e)
        if kind is None:
            raise StoreUnavailableError(
                "Identity store rejected write: IntegrityError"
            ) from e
        raise IdentityConflictError(kind) from e
    # Statement timeouts and most other server errors arrive as plain DBAPIError
    except (DBAPIError, DisconnectionError, PoolTimeoutError, OSError) as e:
        raise StoreUnavailableError(f"Identity store unavailable: {type(e).__name__}") from e


class SqlIdentityStore(IdentityStore):
    """SQLAlchemy implementation of IdentityStore.

    Each operation runs in its own short-lived session. Writes use
    ``session_factory.begin()`` so the account row and its first identity
    row commit together or not at all, and the database's unique
    constraints settle concurrent signups.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identity_settings: IdentitySettings,
    ) -> None:
        """Initialize store with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory
            identity_settings: Identity configuration (username retry budget)
        """
        self.session_factory = session_factory
        self.identity_settings = identity_settings

    async def find_account_by_id(self, account_id: AccountId) -> Optional[Account]:
        """Find an account by ID.

        Args:
            account_id: Account ID to look up

        Returns:
            Account if found, None otherwise
        """
        stmt = select(accounts_table).where(accounts_table.c.id == account_id)
        row = await self._first(stmt)
        return row_to_account(row) if row else None

    async def find_account_by_email(self, email: str) -> Optional[Account]:
        """Find an account by email, ignoring case.

        Args:
            email: Email to search for

        Returns:
            Account if found, None otherwise
        """
        stmt = select(accounts_table).where(
            func.lower(accounts_table.c.email) == normalize_email(email)
        )
        row = await self._first(stmt)
        return row_to_account(row) if row else None

    async def find_account_by_identity(
        self, provider: AuthProvider, provider_user_id: str
    ) -> Optional[Account]:
        """Find the account owning an external identity.

        Joins external_identities to accounts.

        Args:
            provider: The identity provider
            provider_user_id: The person's subject id on that provider

        Returns:
            Account if found, None otherwise
        """
        stmt = (
            select(accounts_table)
            .select_from(
                accounts_table.join(
                    external_identities_table,
                    accounts_table.c.id == external_identities_table.c.account_id,
                )
            )
            .where(external_identities_table.c.provider == provider.value)
            .where(external_identities_table.c.provider_user_id == provider_user_id)
        )
        row = await self._first(stmt)
        return row_to_account(row) if row else None

    async def find_identity(
        self, provider: AuthProvider, provider_user_id: str
    ) -> Optional[ExternalIdentity]:
        """Find an identity by provider and subject id.

        Args:
            provider: The identity provider
            provider_user_id: The person's subject id on that provider

        Returns:
            ExternalIdentity if found, None otherwise
        """
        stmt = select(external_identities_table).where(
            external_identities_table.c.provider == provider.value,
            external_identities_table.c.provider_user_id == provider_user_id,
        )
        row = await self._first(stmt)
        return row_to_external_identity(row) if row else None

    async def find_identity_for_account(
        self, account_id: AccountId, provider: AuthProvider
    ) -> Optional[ExternalIdentity]:
        """Find the identity an account holds for a provider."""
        stmt = select(external_identities_table).where(
            external_identities_table.c.account_id == account_id,
            external_identities_table.c.provider == provider.value,
        )
        row = await self._first(stmt)
        return row_to_external_identity(row) if row else None

    async def list_identities_for_account(
        self, account_id: AccountId
    ) -> list[ExternalIdentity]:
        """Find all identities for an account, oldest first."""
        stmt = (
            select(external_identities_table)
            .where(external_identities_table.c.account_id == account_id)
            .order_by(external_identities_table.c.created_at)
        )
        with _translate_store_errors():
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.mappings().all()
        return [row_to_external_identity(dict(row)) for row in rows]

    async def create_account_with_identity(
        self, account: AccountDraft, identity: ExternalIdentityDraft
    ) -> Account:
        """Create account and first identity in one transaction.

        The username is picked from a fresh scan before each attempt. If a
        concurrent signup takes it first, the scan is repeated; once the
        retry budget is spent a random suffix is tried once.

        Args:
            account: Account to create
            identity: First identity of the account

        Returns:
            The created account

        Raises:
            IdentityConflictError: If a uniqueness constraint fired
            StoreUnavailableError: If the database is unreachable
        """
        base = account.username.root
        attempts = self.identity_settings.username_attempts

        for attempt in range(attempts + 1):
            if attempt < attempts:
                username = await self._next_free_username(base)
            else:
                username = randomized_username(base)
            try:
                return await self._insert_account_with_identity(
                    account, identity, username
                )
            except IdentityConflictError as e:
                if e.kind is not ConflictKind.USERNAME:
                    raise
                logfire.warn(
                    "Username taken by concurrent signup, retrying",
                    attempt=attempt + 1,
                )

        raise IdentityConflictError(ConflictKind.USERNAME)

    async def attach_identity(
        self, account_id: AccountId, identity: ExternalIdentityDraft
    ) -> ExternalIdentity:
        """Attach an identity to an existing account.

        Args:
            account_id: Owning account
            identity: Identity to attach

        Returns:
            The created identity

        Raises:
            NotFoundError: If the account does not exist
            IdentityConflictError: If a uniqueness constraint fired
            StoreUnavailableError: If the database is unreachable
        """
        created = self._new_identity(account_id, identity)

        with _translate_store_errors():
            async with self.session_factory.begin() as session:
                result = await session.execute(
                    select(accounts_table.c.id).where(accounts_table.c.id == account_id)
                )
                if result.first() is None:
                    raise NotFoundError("Account", str(account_id))
                await session.execute(
                    insert(external_identities_table).values(
                        **external_identity_to_dict(created)
                    )
                )
        return created

    async def _insert_account_with_identity(
        self, draft: AccountDraft, identity: ExternalIdentityDraft, username: str
    ) -> Account:
        now = utcnow()
        account = Account(
            id=AccountId(uuid4()),
            email=draft.email,
            username=Username(username),
            has_password=False,
            avatar_url=draft.avatar_url,
            created_at=now,
            updated_at=now,
        )
        first_identity = self._new_identity(account.id, identity)

        with _translate_store_errors():
            async with self.session_factory.begin() as session:
                await session.execute(
                    insert(accounts_table).values(**account_to_dict(account))
                )
                await session.execute(
                    insert(external_identities_table).values(
                        **external_identity_to_dict(first_identity)
                    )
                )
        return account

    async def _next_free_username(self, base: str) -> str:
        stmt = select(accounts_table.c.username).where(
            or_(
                accounts_table.c.username == base,
                accounts_table.c.username.like(f"{base}-%"),
            )
        )
        with _translate_store_errors():
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                taken = result.scalars().all()
        return next_available_username(base, taken)

    async def _first(self, stmt) -> Optional[dict]:
        with _translate_store_errors():
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.mappings().first()
        return dict(row) if row else None

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
            created_at=utcnow(),
        )
