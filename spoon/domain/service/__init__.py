"""Domain services."""

from .account_service import AccountService
from .base import Service
from .identity_resolution_service import IdentityResolutionService

__all__ = [
    "AccountService",
    "IdentityResolutionService",
    "Service",
]
