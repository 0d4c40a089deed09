"""Persistence infrastructure providers."""

from dishka import Scope, provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from spoon.config import IdentitySettings, Settings
from spoon.domain.repository import IdentityStore
from spoon.persistence.database import create_engine, create_session_factory
from spoon.persistence.repository import SqlIdentityStore
from spoon.util.di.base import ProviderBase
from spoon.util.observability import instrument_sqlalchemy


class PersistenceProvider(ProviderBase):
    """Persistence component base."""

    __mock_component__ = "persistence"


class ProdPersistenceProvider(PersistenceProvider):
    """Production persistence provider using PostgreSQL."""

    __is_mock__ = False

    scope = Scope.APP

    @provide(scope=Scope.APP)
    def get_engine(self, settings: Settings) -> AsyncEngine:
        """Provide database engine."""
        engine = create_engine(settings)
        # Instrument SQLAlchemy for observability
        instrument_sqlalchemy(engine)
        return engine

    @provide(scope=Scope.APP)
    def get_session_factory(
        self, engine: AsyncEngine
    ) -> async_sessionmaker[AsyncSession]:
        """Provide session factory."""
        return create_session_factory(engine)

    @provide(scope=Scope.REQUEST)
    def get_identity_store(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identity_settings: IdentitySettings,
    ) -> IdentityStore:
        """Provide identity store.

        The store opens its own transaction per write, so it takes the
        session factory rather than a request-scoped session.
        """
        return SqlIdentityStore(session_factory, identity_settings)
