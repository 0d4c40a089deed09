"""Repository interfaces for the Spoonjoy domain.

Interfaces are defined in the domain layer (dependency inversion).
Implementations live in the persistence layer.
"""

from spoon.domain.repository.identity_store import IdentityStore

__all__ = [
    "IdentityStore",
]
