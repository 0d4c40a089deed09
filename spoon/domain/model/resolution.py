"""Input and output shapes of OAuth identity resolution."""

from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from spoon.domain.model.common import DomainModel
from spoon.domain.value import (
    AccountId,
    ResolutionAction,
    ResolutionErrorCode,
    VerifiedAssertion,
)


class ResolutionRequest(DomainModel):
    """Everything the resolver needs for one OAuth callback.

    ``session_account_id`` is None for anonymous callers; ``redirect_to``
    is None when the caller has no preferred destination.
    """

    assertion: VerifiedAssertion
    session_account_id: Optional[AccountId] = None
    redirect_to: Optional[str] = None

    @property
    def is_linking(self) -> bool:
        return self.session_account_id is not None


class ResolutionSuccess(DomainModel):
    """Resolution succeeded; the caller should start a session."""

    kind: Literal["success"] = "success"
    action: ResolutionAction
    account_id: AccountId
    redirect_to: str


class ResolutionFailure(DomainModel):
    """Resolution was refused with a recoverable, typed reason.

    ``redirect_to`` is the request's value echoed back so the caller can
    offer a retry path.
    """

    kind: Literal["failure"] = "failure"
    code: ResolutionErrorCode
    message: str
    redirect_to: Optional[str] = None


ResolutionOutcome = Annotated[
    Union[ResolutionSuccess, ResolutionFailure], Field(discriminator="kind")
]
