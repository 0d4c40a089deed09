"""Get linked providers use case."""

from uuid import UUID

from pydantic import BaseModel

from spoon.application.usecase.base import BaseUseCase
from spoon.domain.service import AccountService
from spoon.domain.value import AccountId, AuthProvider


class LinkedProviderInfo(BaseModel):
    """Link status of one provider for the account settings page."""

    provider: AuthProvider
    linked: bool
    provider_display_name: str | None = None  # Name or email from the provider


class GetLinkedProvidersRequest(BaseModel):
    """Get linked providers request."""

    account_id: str  # Account ID from the caller's session


class GetLinkedProvidersResponse(BaseModel):
    """Get linked providers response."""

    account_id: str
    username: str
    has_password: bool
    providers: list[LinkedProviderInfo]


class GetLinkedProvidersUseCase(BaseUseCase):
    """Use case for listing which OAuth providers an account has linked."""

    def __init__(self, account_service: AccountService) -> None:
        """Initialize get linked providers use case.

        Args:
            account_service: Account domain service
        """
        self.account_service = account_service

    async def execute(
        self, request: GetLinkedProvidersRequest
    ) -> GetLinkedProvidersResponse:
        """Execute get linked providers flow.

        Args:
            request: Request with the signed-in account ID

        Returns:
            Every supported provider, marked linked or not

        Raises:
            NotFoundError: If the account does not exist
        """
        account_id = AccountId(UUID(request.account_id))

        # Raises NotFoundError if the session points at a deleted account
        account = await self.account_service.get_by_id(account_id)
        identities = await self.account_service.get_linked_identities(account_id)
        by_provider = {identity.provider: identity for identity in identities}

        return GetLinkedProvidersResponse(
            account_id=str(account.id),
            username=account.username.root,
            has_password=account.has_password,
            providers=[
                LinkedProviderInfo(
                    provider=provider,
                    linked=provider in by_provider,
                    provider_display_name=(
                        by_provider[provider].provider_display_name
                        if provider in by_provider
                        else None
                    ),
                )
                for provider in AuthProvider
            ],
        )
