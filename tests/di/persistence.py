"""Mock persistence providers for testing."""

from dishka import Scope, provide

from spoon.domain.repository import IdentityStore
from spoon.persistence.repository.inmemory import InMemoryIdentityStore
from spoon.util.di.infrastructure.persistence import PersistenceProvider


class MockPersistenceProvider(PersistenceProvider):
    """Mock persistence provider using the in-memory identity store.

    Uses REQUEST scope to ensure test isolation - each test gets a fresh store.
    """

    __is_mock__ = True

    @provide(scope=Scope.REQUEST)
    def get_identity_store(self) -> IdentityStore:
        """Provide in-memory identity store."""
        return InMemoryIdentityStore()
