"""Authentication use cases."""

from .complete_oauth import CompleteOAuthRequest, CompleteOAuthUseCase
from .get_linked_providers import (
    GetLinkedProvidersRequest,
    GetLinkedProvidersResponse,
    GetLinkedProvidersUseCase,
    LinkedProviderInfo,
)

__all__ = [
    "CompleteOAuthRequest",
    "CompleteOAuthUseCase",
    "GetLinkedProvidersRequest",
    "GetLinkedProvidersResponse",
    "GetLinkedProvidersUseCase",
    "LinkedProviderInfo",
]
