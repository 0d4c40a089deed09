"""Test configuration and fixtures."""

from uuid import uuid4

import pytest

from spoon.config import IdentitySettings
from spoon.domain.model import Account
from spoon.domain.service import AccountService, IdentityResolutionService
from spoon.domain.value import AccountId, AuthProvider, Username, VerifiedAssertion
from spoon.persistence.repository.inmemory import InMemoryIdentityStore


def make_assertion(
    provider: AuthProvider = AuthProvider.GOOGLE,
    provider_user_id: str = "abc123",
    email: str | None = "a@x.com",
    given_name: str | None = None,
    family_name: str | None = None,
    full_name: str | None = "Jane Doe",
    avatar_url: str | None = None,
) -> VerifiedAssertion:
    """Helper function to build a verified provider assertion."""
    return VerifiedAssertion(
        provider=provider,
        provider_user_id=provider_user_id,
        email=email,
        given_name=given_name,
        family_name=family_name,
        full_name=full_name,
        avatar_url=avatar_url,
    )


def make_account(
    email: str = "b@y.com",
    username: str = "existing-user",
    has_password: bool = True,
) -> Account:
    """Helper function to build an account created outside OAuth."""
    return Account(
        id=AccountId(uuid4()),
        email=email,
        username=Username(username),
        has_password=has_password,
    )


def build_resolver(
    store: InMemoryIdentityStore, settings: IdentitySettings | None = None
) -> IdentityResolutionService:
    """Helper function to wire a resolver over a given store."""
    settings = settings or IdentitySettings()
    account_service = AccountService(store, settings)
    return IdentityResolutionService(store, account_service, settings)


@pytest.fixture
def identity_settings() -> IdentitySettings:
    """Default identity settings."""
    return IdentitySettings()


@pytest.fixture
def store() -> InMemoryIdentityStore:
    """Fresh in-memory identity store."""
    return InMemoryIdentityStore()


@pytest.fixture
def resolver(
    store: InMemoryIdentityStore, identity_settings: IdentitySettings
) -> IdentityResolutionService:
    """Resolver over the in-memory store."""
    return build_resolver(store, identity_settings)
