"""In-memory repository implementations for testing."""

from .identity_store import InMemoryIdentityStore

__all__ = [
    "InMemoryIdentityStore",
]
