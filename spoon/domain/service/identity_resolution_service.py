"""OAuth identity resolution domain service."""

import logfire

from spoon.config import IdentitySettings
from spoon.domain.error import (
    AccountCreationError,
    IdentityConflictError,
    NotFoundError,
    StoreUnavailableError,
)
from spoon.domain.model import (
    ResolutionFailure,
    ResolutionOutcome,
    ResolutionRequest,
    ResolutionSuccess,
)
from spoon.domain.repository import IdentityStore
from spoon.domain.value import (
    AccountId,
    ConflictKind,
    ResolutionAction,
    ResolutionErrorCode,
)

from .account_service import AccountService
from .base import Service


class IdentityResolutionService(Service):
    """Decides what a verified OAuth assertion means for the caller.

    Anonymous callers are logged in, signed up, or refused; signed-in
    callers get the identity linked to their account or are refused.
    Each call performs at most one write and returns exactly one outcome.
    Store errors never escape ``resolve``: they come back as
    ``ResolutionFailure`` values.
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        account_service: AccountService,
        identity_settings: IdentitySettings,
    ) -> None:
        """Initialize identity resolution service.

        Args:
            identity_store: Account and identity persistence
            account_service: Account domain service (performs the writes)
            identity_settings: Identity resolution configuration
        """
        self.identity_store = identity_store
        self.account_service = account_service
        self.identity_settings = identity_settings

    async def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        """Resolve an OAuth callback into a single outcome.

        Steps:
        1. Signed-in caller: link the identity to the session account
        2. Anonymous caller whose identity is known: log them in
        3. Anonymous caller whose email belongs to another account: refuse
        4. Otherwise: create an account holding the identity

        Args:
            request: Verified assertion, optional session account, redirect hint

        Returns:
            ResolutionSuccess with the account to sign in, or ResolutionFailure
        """
        provider = request.assertion.provider
        with logfire.span(
            "identity_resolution.resolve",
            provider=provider.value,
            mode="linking" if request.is_linking else "login",
        ) as span:
            try:
                if request.session_account_id is not None:
                    outcome = await self._link(request, request.session_account_id)
                else:
                    outcome = await self._login_or_signup(request)
            except StoreUnavailableError as e:
                logfire.error(
                    "Identity store unavailable",
                    provider=provider.value,
                    error_type=type(e).__name__,
                )
                outcome = self._fail(
                    request,
                    ResolutionErrorCode.INFRASTRUCTURE_ERROR,
                    "We couldn't complete sign-in right now. Please try again.",
                )

            if isinstance(outcome, ResolutionSuccess):
                span.set_attribute("action", outcome.action.value)
                span.set_attribute("account_id", str(outcome.account_id))
            else:
                span.set_attribute("error_code", outcome.code.value)
            return outcome

    async def _login_or_signup(self, request: ResolutionRequest) -> ResolutionOutcome:
        assertion = request.assertion

        account = await self.identity_store.find_account_by_identity(
            assertion.provider, assertion.provider_user_id
        )
        if account:
            logfire.info(
                "Returning user logged in",
                account_id=str(account.id),
                provider=assertion.provider.value,
            )
            return self._succeed(request, ResolutionAction.LOGGED_IN, account.id)

        if assertion.email:
            existing = await self.identity_store.find_account_by_email(assertion.email)
            if existing:
                logfire.info(
                    "Signup blocked by existing account email",
                    provider=assertion.provider.value,
                )
                return self._account_exists(request)

        try:
            account = await self.account_service.create_from_assertion(assertion)
        except AccountCreationError as e:
            logfire.warn(
                "Account creation rejected",
                provider=assertion.provider.value,
                code=e.code.value,
            )
            return self._fail(request, e.code, e.message)
        except IdentityConflictError as e:
            return await self._recover_from_signup_race(request, e.kind)

        return self._succeed(request, ResolutionAction.ACCOUNT_CREATED, account.id)

    async def _recover_from_signup_race(
        self, request: ResolutionRequest, kind: ConflictKind
    ) -> ResolutionOutcome:
        """Re-check once after a concurrent signup won a uniqueness race."""
        assertion = request.assertion
        logfire.warn(
            "Signup hit uniqueness conflict, re-checking identity",
            provider=assertion.provider.value,
            constraint=kind.value,
        )

        account = await self.identity_store.find_account_by_identity(
            assertion.provider, assertion.provider_user_id
        )
        if account:
            return self._succeed(request, ResolutionAction.LOGGED_IN, account.id)

        if kind is ConflictKind.EMAIL:
            return self._account_exists(request)
        if kind is ConflictKind.USERNAME:
            return self._fail(
                request,
                ResolutionErrorCode.USERNAME_UNAVAILABLE,
                "We couldn't pick a username for your new account. Please try again.",
            )
        return self._provider_account_taken(request)

    async def _link(
        self, request: ResolutionRequest, account_id: AccountId
    ) -> ResolutionOutcome:
        assertion = request.assertion

        account = await self.identity_store.find_account_by_id(account_id)
        if not account:
            return self._account_not_found(request)

        existing = await self.identity_store.find_identity_for_account(
            account_id, assertion.provider
        )
        if existing:
            return self._provider_already_linked(request)

        owner = await self.identity_store.find_account_by_identity(
            assertion.provider, assertion.provider_user_id
        )
        if owner:
            return self._provider_account_taken(request)

        # The session account's email is never compared with the assertion's.
        try:
            await self.account_service.link_assertion(account_id, assertion)
        except NotFoundError:
            return self._account_not_found(request)
        except IdentityConflictError as e:
            logfire.warn(
                "Link hit uniqueness conflict",
                account_id=str(account_id),
                provider=assertion.provider.value,
                constraint=e.kind.value,
            )
            if e.kind is ConflictKind.ACCOUNT_PROVIDER:
                return self._provider_already_linked(request)
            return self._provider_account_taken(request)

        return self._succeed(request, ResolutionAction.IDENTITY_LINKED, account_id)

    def _succeed(
        self,
        request: ResolutionRequest,
        action: ResolutionAction,
        account_id: AccountId,
    ) -> ResolutionSuccess:
        if request.redirect_to is not None:
            redirect_to = request.redirect_to
        elif action is ResolutionAction.IDENTITY_LINKED:
            redirect_to = self.identity_settings.link_redirect
        else:
            redirect_to = self.identity_settings.login_redirect
        return ResolutionSuccess(
            action=action, account_id=account_id, redirect_to=redirect_to
        )

    def _fail(
        self, request: ResolutionRequest, code: ResolutionErrorCode, message: str
    ) -> ResolutionFailure:
        return ResolutionFailure(
            code=code, message=message, redirect_to=request.redirect_to
        )

    def _account_exists(self, request: ResolutionRequest) -> ResolutionFailure:
        provider = request.assertion.provider.display_name
        return self._fail(
            request,
            ResolutionErrorCode.ACCOUNT_EXISTS,
            "An account with this email already exists. Please log in, "
            f"then link your {provider} account from your account settings.",
        )

    def _provider_already_linked(self, request: ResolutionRequest) -> ResolutionFailure:
        provider = request.assertion.provider.display_name
        return self._fail(
            request,
            ResolutionErrorCode.PROVIDER_ALREADY_LINKED,
            f"Your account already has a {provider} account linked.",
        )

    def _provider_account_taken(self, request: ResolutionRequest) -> ResolutionFailure:
        provider = request.assertion.provider.display_name
        return self._fail(
            request,
            ResolutionErrorCode.PROVIDER_ACCOUNT_TAKEN,
            f"This {provider} account is already linked to a different account.",
        )

    def _account_not_found(self, request: ResolutionRequest) -> ResolutionFailure:
        return self._fail(
            request,
            ResolutionErrorCode.ACCOUNT_NOT_FOUND,
            "Your account was not found. Please log in again.",
        )
