"""Domain layer errors.

These are raised by identity store implementations and domain services.
The identity resolver turns every one of them into a typed failure.
"""

from spoon.domain.value import ConflictKind, ResolutionErrorCode


class DomainError(Exception):
    """Base domain error."""

    pass


class NotFoundError(DomainError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class IdentityConflictError(DomainError):
    """Raised when a storage-level uniqueness constraint rejects a write."""

    def __init__(self, kind: ConflictKind):
        self.kind = kind
        super().__init__(f"Uniqueness conflict on {kind.value}")


class StoreUnavailableError(DomainError):
    """Raised for storage failures unrelated to uniqueness.

    Connectivity loss, timeouts and other operational errors land here.
    """

    pass


class AccountCreationError(DomainError):
    """Raised when an OAuth signup cannot produce a valid account."""

    def __init__(self, code: ResolutionErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)
