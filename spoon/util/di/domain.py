"""Domain layer DI providers."""

from dishka import Scope, provide

from spoon.config import IdentitySettings
from spoon.domain.repository import IdentityStore
from spoon.domain.service import AccountService, IdentityResolutionService
from spoon.util.di.base import ProviderBase


class ProdDomainProvider(ProviderBase):
    """Production domain services provider - concrete, no mocks needed.

    Domain services are REQUEST-scoped to align with the identity store
    lifecycle.
    """

    scope = Scope.REQUEST

    @provide
    def get_account_service(
        self, identity_store: IdentityStore, identity_settings: IdentitySettings
    ) -> AccountService:
        """Provide account domain service."""
        return AccountService(
            identity_store=identity_store, identity_settings=identity_settings
        )

    @provide
    def get_identity_resolution_service(
        self,
        identity_store: IdentityStore,
        account_service: AccountService,
        identity_settings: IdentitySettings,
    ) -> IdentityResolutionService:
        """Provide identity resolution domain service."""
        return IdentityResolutionService(
            identity_store=identity_store,
            account_service=account_service,
            identity_settings=identity_settings,
        )
