"""Application layer DI providers."""

from dishka import Scope, provide

from spoon.application.usecase.auth import (
    CompleteOAuthUseCase,
    GetLinkedProvidersUseCase,
)
from spoon.domain.service import AccountService, IdentityResolutionService
from spoon.util.di.base import ProviderBase


class ProdApplicationProvider(ProviderBase):
    """Production application use cases provider - concrete, no mocks needed."""

    # Auth use cases
    @provide(scope=Scope.REQUEST)
    def get_complete_oauth_use_case(
        self, identity_resolution_service: IdentityResolutionService
    ) -> CompleteOAuthUseCase:
        """Provide complete OAuth use case."""
        return CompleteOAuthUseCase(
            identity_resolution_service=identity_resolution_service
        )

    @provide(scope=Scope.REQUEST)
    def get_linked_providers_use_case(
        self, account_service: AccountService
    ) -> GetLinkedProvidersUseCase:
        """Provide get linked providers use case."""
        return GetLinkedProvidersUseCase(account_service=account_service)
