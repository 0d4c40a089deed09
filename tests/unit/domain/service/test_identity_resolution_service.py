"""Unit tests for IdentityResolutionService."""

import asyncio
from uuid import uuid4

import pytest

from spoon.config import IdentitySettings
from spoon.domain.error import IdentityConflictError, StoreUnavailableError
from spoon.domain.model import (
    ResolutionFailure,
    ResolutionRequest,
    ResolutionSuccess,
)
from spoon.domain.value import (
    AccountId,
    AuthProvider,
    ConflictKind,
    ResolutionAction,
    ResolutionErrorCode,
)
from spoon.persistence.repository.inmemory import InMemoryIdentityStore
from tests.conftest import build_resolver, make_account, make_assertion


class YieldingIdentityStore(InMemoryIdentityStore):
    """Store that yields to the event loop after every lookup.

    Lets concurrent resolutions all pass their read checks before any of
    them writes.
    """

    async def find_account_by_id(self, account_id):
        result = await super().find_account_by_id(account_id)
        await asyncio.sleep(0)
        return result

    async def find_account_by_email(self, email):
        result = await super().find_account_by_email(email)
        await asyncio.sleep(0)
        return result

    async def find_account_by_identity(self, provider, provider_user_id):
        result = await super().find_account_by_identity(provider, provider_user_id)
        await asyncio.sleep(0)
        return result

    async def find_identity_for_account(self, account_id, provider):
        result = await super().find_identity_for_account(account_id, provider)
        await asyncio.sleep(0)
        return result


class LosesCreateRaceStore(InMemoryIdentityStore):
    """Store where a concurrent request commits the same signup first."""

    async def create_account_with_identity(self, account, identity):
        await super().create_account_with_identity(account, identity)
        raise IdentityConflictError(ConflictKind.PROVIDER_SUBJECT)


class ConflictingStore(InMemoryIdentityStore):
    """Store whose writes always hit a uniqueness conflict."""

    def __init__(self, kind: ConflictKind) -> None:
        super().__init__()
        self.kind = kind

    async def create_account_with_identity(self, account, identity):
        raise IdentityConflictError(self.kind)

    async def attach_identity(self, account_id, identity):
        raise IdentityConflictError(self.kind)


class UnavailableStore(InMemoryIdentityStore):
    """Store whose identity lookups fail with a connectivity error."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    async def find_account_by_identity(self, provider, provider_user_id):
        self.calls += 1
        raise StoreUnavailableError("connection refused")


class TestLoginOrSignup:
    """Tests for anonymous resolution."""

    @pytest.mark.asyncio
    async def test_first_login_creates_account(self, resolver, store):
        """Should create an account, username and identity for a new person."""
        # Arrange
        request = ResolutionRequest(
            assertion=make_assertion(
                provider_user_id="abc123", email="a@x.com", full_name="Jane Doe"
            )
        )

        # Act
        outcome = await resolver.resolve(request)

        # Assert
        assert isinstance(outcome, ResolutionSuccess)
        assert outcome.action == ResolutionAction.ACCOUNT_CREATED
        assert outcome.redirect_to == "/"
        account = store.accounts[0]
        assert outcome.account_id == account.id
        assert account.email == "a@x.com"
        assert "jane" in account.username.root
        identity = store.identities[0]
        assert identity.account_id == account.id
        assert identity.provider_display_name == "Jane Doe"

    @pytest.mark.asyncio
    async def test_repeat_login_is_idempotent(self, resolver, store):
        """Should log the same account in without creating rows."""
        # Arrange
        request = ResolutionRequest(assertion=make_assertion())
        first = await resolver.resolve(request)

        # Act
        second = await resolver.resolve(request)
        third = await resolver.resolve(request)

        # Assert
        assert second.action == ResolutionAction.LOGGED_IN
        assert third.action == ResolutionAction.LOGGED_IN
        assert second.account_id == first.account_id == third.account_id
        assert len(store.accounts) == 1
        assert len(store.identities) == 1

    @pytest.mark.asyncio
    async def test_login_ignores_changed_email(self, resolver, store):
        """Should match on provider subject, not on the current email."""
        first = await resolver.resolve(ResolutionRequest(assertion=make_assertion()))

        outcome = await resolver.resolve(
            ResolutionRequest(assertion=make_assertion(email="new@x.com"))
        )

        assert outcome.action == ResolutionAction.LOGGED_IN
        assert outcome.account_id == first.account_id

    @pytest.mark.asyncio
    async def test_email_collision_blocks_signup(self, resolver, store):
        """Should refuse signup when another account owns the email."""
        # Arrange
        store.add_account(make_account(email="a@x.com"))
        request = ResolutionRequest(
            assertion=make_assertion(email="A@X.COM"), redirect_to="/recipes/42"
        )

        # Act
        outcome = await resolver.resolve(request)

        # Assert
        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == ResolutionErrorCode.ACCOUNT_EXISTS
        assert outcome.redirect_to == "/recipes/42"
        assert "a@x.com" not in outcome.message.lower()
        assert "Google" in outcome.message
        assert len(store.accounts) == 1
        assert store.identities == []

    @pytest.mark.asyncio
    async def test_missing_email_fails_with_email_required(self, resolver, store):
        """Should pass the creation failure through unchanged."""
        request = ResolutionRequest(
            assertion=make_assertion(provider=AuthProvider.APPLE, email=None)
        )

        outcome = await resolver.resolve(request)

        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == ResolutionErrorCode.EMAIL_REQUIRED
        assert outcome.message.startswith("An email address is required")
        assert outcome.redirect_to is None
        assert store.accounts == []

    @pytest.mark.asyncio
    async def test_known_identity_without_email_logs_in(self, resolver, store):
        """Should log in a returning person even when the email is hidden."""
        first = await resolver.resolve(ResolutionRequest(assertion=make_assertion()))

        outcome = await resolver.resolve(
            ResolutionRequest(assertion=make_assertion(email=None))
        )

        assert outcome.action == ResolutionAction.LOGGED_IN
        assert outcome.account_id == first.account_id

    @pytest.mark.asyncio
    async def test_same_subject_on_other_provider_is_new_identity(self, resolver, store):
        """Should key identities on provider and subject together."""
        await resolver.resolve(ResolutionRequest(assertion=make_assertion()))

        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(
                    provider=AuthProvider.APPLE, email="other@x.com"
                )
            )
        )

        assert outcome.action == ResolutionAction.ACCOUNT_CREATED
        assert len(store.accounts) == 2

    @pytest.mark.asyncio
    async def test_username_collision_gets_suffix(self, resolver, store):
        """Should suffix the username when the candidate is taken."""
        store.add_account(make_account(email="first@x.com", username="jane-doe"))

        outcome = await resolver.resolve(ResolutionRequest(assertion=make_assertion()))

        account = next(a for a in store.accounts if a.id == outcome.account_id)
        assert account.username.root == "jane-doe-1"


class TestLinking:
    """Tests for resolution with a signed-in session."""

    @pytest.mark.asyncio
    async def test_links_regardless_of_email(self, resolver, store):
        """Should link an unclaimed identity even when emails differ."""
        # Arrange
        session_account = store.add_account(make_account(email="b@y.com"))
        request = ResolutionRequest(
            assertion=make_assertion(provider_user_id="xyz789", email="a@x.com"),
            session_account_id=session_account.id,
        )

        # Act
        outcome = await resolver.resolve(request)

        # Assert
        assert isinstance(outcome, ResolutionSuccess)
        assert outcome.action == ResolutionAction.IDENTITY_LINKED
        assert outcome.account_id == session_account.id
        assert outcome.redirect_to == "/account/settings"
        assert store.identities[0].account_id == session_account.id
        assert len(store.accounts) == 1

    @pytest.mark.asyncio
    async def test_provider_already_linked(self, resolver, store):
        """Should refuse a second identity for the same provider."""
        # Arrange
        session_account = store.add_account(make_account())
        await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(provider_user_id="first"),
                session_account_id=session_account.id,
            )
        )

        # Act
        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(provider_user_id="second"),
                session_account_id=session_account.id,
                redirect_to="/account/settings?tab=connections",
            )
        )

        # Assert
        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == ResolutionErrorCode.PROVIDER_ALREADY_LINKED
        assert outcome.redirect_to == "/account/settings?tab=connections"
        assert len(store.identities) == 1

    @pytest.mark.asyncio
    async def test_relinking_own_identity_is_already_linked(self, resolver, store):
        """Should report already linked when the same identity comes back."""
        session_account = store.add_account(make_account())
        request = ResolutionRequest(
            assertion=make_assertion(), session_account_id=session_account.id
        )
        await resolver.resolve(request)

        outcome = await resolver.resolve(request)

        assert outcome.code == ResolutionErrorCode.PROVIDER_ALREADY_LINKED

    @pytest.mark.asyncio
    async def test_provider_account_taken(self, resolver, store):
        """Should refuse an identity owned by another account."""
        # Arrange
        owner = await resolver.resolve(ResolutionRequest(assertion=make_assertion()))
        session_account = store.add_account(make_account(email="b@y.com"))

        # Act
        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(), session_account_id=session_account.id
            )
        )

        # Assert
        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == ResolutionErrorCode.PROVIDER_ACCOUNT_TAKEN
        assert outcome.redirect_to is None
        assert len(store.identities) == 1
        assert store.identities[0].account_id == owner.account_id

    @pytest.mark.asyncio
    async def test_second_provider_can_be_linked(self, resolver, store):
        """Should allow one identity per provider on the same account."""
        created = await resolver.resolve(ResolutionRequest(assertion=make_assertion()))

        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(
                    provider=AuthProvider.APPLE, provider_user_id="apple-1", email=None
                ),
                session_account_id=created.account_id,
            )
        )

        assert outcome.action == ResolutionAction.IDENTITY_LINKED
        assert {i.provider for i in store.identities} == {
            AuthProvider.GOOGLE,
            AuthProvider.APPLE,
        }

    @pytest.mark.asyncio
    async def test_unknown_session_account(self, resolver, store):
        """Should fail with account_not_found and write nothing."""
        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(),
                session_account_id=AccountId(uuid4()),
                redirect_to="/account/settings",
            )
        )

        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == ResolutionErrorCode.ACCOUNT_NOT_FOUND
        assert outcome.redirect_to == "/account/settings"
        assert store.identities == []


class TestRedirects:
    """Tests for redirect handling."""

    @pytest.mark.asyncio
    async def test_custom_redirect_honored_on_signup(self, resolver):
        """Should return the requested redirect verbatim on success."""
        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(), redirect_to="/recipes/new?draft=1"
            )
        )

        assert outcome.redirect_to == "/recipes/new?draft=1"

    @pytest.mark.asyncio
    async def test_custom_redirect_honored_on_link(self, resolver, store):
        """Should prefer the requested redirect over the linking default."""
        session_account = store.add_account(make_account())

        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(),
                session_account_id=session_account.id,
                redirect_to="/cookbooks",
            )
        )

        assert outcome.action == ResolutionAction.IDENTITY_LINKED
        assert outcome.redirect_to == "/cookbooks"

    @pytest.mark.asyncio
    async def test_configured_defaults(self, store):
        """Should use configured defaults when no redirect is requested."""
        # Arrange
        settings = IdentitySettings(login_redirect="/kitchen", link_redirect="/me")
        resolver = build_resolver(store, settings)
        session_account = store.add_account(make_account())

        # Act
        login = await resolver.resolve(ResolutionRequest(assertion=make_assertion()))
        link = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(
                    provider=AuthProvider.APPLE, provider_user_id="apple-1"
                ),
                session_account_id=session_account.id,
            )
        )

        # Assert
        assert login.redirect_to == "/kitchen"
        assert link.redirect_to == "/me"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("redirect_to", [None, "", "/recipes/42"])
    async def test_failure_echoes_redirect(self, resolver, store, redirect_to):
        """Should echo the request's redirect unchanged on failure."""
        store.add_account(make_account(email="a@x.com"))

        outcome = await resolver.resolve(
            ResolutionRequest(assertion=make_assertion(), redirect_to=redirect_to)
        )

        assert isinstance(outcome, ResolutionFailure)
        assert outcome.redirect_to == redirect_to


class TestStoreFailures:
    """Tests for races and infrastructure errors."""

    @pytest.mark.asyncio
    async def test_concurrent_first_logins_create_one_account(self):
        """Should end with one AccountCreated and one LoggedIn."""
        # Arrange
        store = YieldingIdentityStore()
        resolver = build_resolver(store)
        request = ResolutionRequest(assertion=make_assertion())

        # Act
        outcomes = await asyncio.gather(
            resolver.resolve(request), resolver.resolve(request)
        )

        # Assert
        actions = sorted(o.action.value for o in outcomes)
        assert actions == ["account_created", "logged_in"]
        assert outcomes[0].account_id == outcomes[1].account_id
        assert len(store.accounts) == 1
        assert len(store.identities) == 1

    @pytest.mark.asyncio
    async def test_many_concurrent_first_logins(self):
        """Should never create more than one identity per subject."""
        store = YieldingIdentityStore()
        resolver = build_resolver(store)
        request = ResolutionRequest(assertion=make_assertion())

        outcomes = await asyncio.gather(*(resolver.resolve(request) for _ in range(5)))

        assert all(isinstance(o, ResolutionSuccess) for o in outcomes)
        assert len({o.account_id for o in outcomes}) == 1
        assert len(store.identities) == 1

    @pytest.mark.asyncio
    async def test_concurrent_links_of_same_identity(self):
        """Should end with one IdentityLinked and one ProviderAccountTaken."""
        # Arrange
        store = YieldingIdentityStore()
        resolver = build_resolver(store)
        first = store.add_account(make_account(email="one@x.com", username="one"))
        second = store.add_account(make_account(email="two@x.com", username="two"))
        assertion = make_assertion(provider_user_id="shared")

        # Act
        outcomes = await asyncio.gather(
            resolver.resolve(
                ResolutionRequest(assertion=assertion, session_account_id=first.id)
            ),
            resolver.resolve(
                ResolutionRequest(assertion=assertion, session_account_id=second.id)
            ),
        )

        # Assert
        linked = [o for o in outcomes if isinstance(o, ResolutionSuccess)]
        failed = [o for o in outcomes if isinstance(o, ResolutionFailure)]
        assert len(linked) == 1
        assert linked[0].action == ResolutionAction.IDENTITY_LINKED
        assert len(failed) == 1
        assert failed[0].code == ResolutionErrorCode.PROVIDER_ACCOUNT_TAKEN
        assert len(store.identities) == 1

    @pytest.mark.asyncio
    async def test_lost_create_race_logs_in_winner(self):
        """Should re-check once and log in the account that won."""
        store = LosesCreateRaceStore()
        resolver = build_resolver(store)

        outcome = await resolver.resolve(ResolutionRequest(assertion=make_assertion()))

        assert isinstance(outcome, ResolutionSuccess)
        assert outcome.action == ResolutionAction.LOGGED_IN
        assert outcome.account_id == store.accounts[0].id
        assert len(store.accounts) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kind", "code"),
        [
            (ConflictKind.EMAIL, ResolutionErrorCode.ACCOUNT_EXISTS),
            (ConflictKind.PROVIDER_SUBJECT, ResolutionErrorCode.PROVIDER_ACCOUNT_TAKEN),
            (ConflictKind.ACCOUNT_PROVIDER, ResolutionErrorCode.PROVIDER_ACCOUNT_TAKEN),
            (ConflictKind.USERNAME, ResolutionErrorCode.USERNAME_UNAVAILABLE),
        ],
    )
    async def test_unrecovered_create_conflict(self, kind, code):
        """Should map a persisting creation conflict to a failure code."""
        store = ConflictingStore(kind)
        resolver = build_resolver(store)

        outcome = await resolver.resolve(
            ResolutionRequest(assertion=make_assertion(), redirect_to="/x")
        )

        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == code
        assert outcome.redirect_to == "/x"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kind", "code"),
        [
            (ConflictKind.PROVIDER_SUBJECT, ResolutionErrorCode.PROVIDER_ACCOUNT_TAKEN),
            (ConflictKind.ACCOUNT_PROVIDER, ResolutionErrorCode.PROVIDER_ALREADY_LINKED),
        ],
    )
    async def test_link_conflict(self, kind, code):
        """Should map an attach conflict to a failure code."""
        store = ConflictingStore(kind)
        resolver = build_resolver(store)
        session_account = store.add_account(make_account())

        outcome = await resolver.resolve(
            ResolutionRequest(
                assertion=make_assertion(), session_account_id=session_account.id
            )
        )

        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == code

    @pytest.mark.asyncio
    async def test_store_unavailable_is_not_retried(self):
        """Should return infrastructure_error after a single attempt."""
        # Arrange
        store = UnavailableStore()
        resolver = build_resolver(store)

        # Act
        outcome = await resolver.resolve(
            ResolutionRequest(assertion=make_assertion(), redirect_to="/recipes")
        )

        # Assert
        assert isinstance(outcome, ResolutionFailure)
        assert outcome.code == ResolutionErrorCode.INFRASTRUCTURE_ERROR
        assert outcome.redirect_to == "/recipes"
        assert store.calls == 1
        assert store.accounts == []


class TestLogging:
    """Tests for what resolution writes to logfire."""

    @pytest.mark.asyncio
    async def test_signup_keeps_personal_data_out_of_telemetry(self, capfire):
        """Should not export the email, subject id or username."""
        # Arrange
        store = InMemoryIdentityStore()
        resolver = build_resolver(store)
        assertion = make_assertion(
            provider_user_id="google-sub-98765",
            email="john.smithers@x.com",
            full_name=None,
        )

        # Act
        outcome = await resolver.resolve(ResolutionRequest(assertion=assertion))
        account = await store.find_account_by_id(outcome.account_id)

        # Assert
        assert outcome.action == ResolutionAction.ACCOUNT_CREATED
        exported = repr(
            [span["attributes"] for span in capfire.exporter.exported_spans_as_dict()]
        )
        assert str(outcome.account_id) in exported
        assert "john.smithers@x.com" not in exported
        assert "google-sub-98765" not in exported
        assert account.username.root not in exported

    @pytest.mark.asyncio
    async def test_blocked_signup_keeps_email_out_of_telemetry(self, capfire):
        """Should not export the email that matched an existing account."""
        # Arrange
        store = InMemoryIdentityStore()
        store.add_account(make_account(email="taken@x.com", username="taken"))
        resolver = build_resolver(store)

        # Act
        outcome = await resolver.resolve(
            ResolutionRequest(assertion=make_assertion(email="taken@x.com"))
        )

        # Assert
        assert outcome.code == ResolutionErrorCode.ACCOUNT_EXISTS
        exported = repr(
            [span["attributes"] for span in capfire.exporter.exported_spans_as_dict()]
        )
        assert "taken@x.com" not in exported
