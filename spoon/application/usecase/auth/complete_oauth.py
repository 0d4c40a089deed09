"""Complete OAuth use case."""

from uuid import UUID

import logfire
from pydantic import BaseModel

from spoon.application.usecase.base import BaseUseCase
from spoon.domain.model import ResolutionOutcome, ResolutionRequest
from spoon.domain.service import IdentityResolutionService
from spoon.domain.value import AccountId, VerifiedAssertion


class CompleteOAuthRequest(BaseModel):
    """Completed OAuth callback.

    The provider handshake has already run; ``assertion`` holds the
    verified claims it produced.
    """

    assertion: VerifiedAssertion
    session_account_id: UUID | None = None  # Account ID from the caller's session
    redirect_to: str | None = None  # Page the caller asked to return to


class CompleteOAuthUseCase(BaseUseCase):
    """Use case for turning a verified OAuth callback into an account decision."""

    def __init__(self, identity_resolution_service: IdentityResolutionService) -> None:
        """Initialize complete OAuth use case.

        Args:
            identity_resolution_service: Identity resolution domain service
        """
        self.identity_resolution_service = identity_resolution_service

    async def execute(self, request: CompleteOAuthRequest) -> ResolutionOutcome:
        """Execute the OAuth completion flow.

        Steps:
        1. Convert the caller's session account ID, if any
        2. Resolve the assertion to login, signup or link
        3. Return the outcome for the caller to act on

        Args:
            request: Verified assertion with session context

        Returns:
            ResolutionSuccess or ResolutionFailure; never raises for
            business or storage conditions. A malformed session account ID
            is rejected earlier, when the request is validated
        """
        session_account_id = (
            AccountId(request.session_account_id)
            if request.session_account_id is not None
            else None
        )

        with logfire.span(
            "complete_oauth.execute",
            provider=request.assertion.provider.value,
            linking=session_account_id is not None,
        ):
            return await self.identity_resolution_service.resolve(
                ResolutionRequest(
                    assertion=request.assertion,
                    session_account_id=session_account_id,
                    redirect_to=request.redirect_to,
                )
            )
