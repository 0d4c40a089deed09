"""SQL repository implementations."""

from spoon.persistence.repository.identity_store import (
    SqlIdentityStore,
    classify_integrity_error,
)

__all__ = [
    "SqlIdentityStore",
    "classify_integrity_error",
]
