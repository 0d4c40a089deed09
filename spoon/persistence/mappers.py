"""Mappers for converting between database rows and domain models.

Domain models are immutable pydantic models, so rows are mapped by hand
rather than through SQLAlchemy's ORM.
"""

from typing import Any, Dict
from uuid import UUID

from spoon.domain.model import Account, ExternalIdentity
from spoon.domain.value import (
    AccountId,
    AuthProvider,
    ExternalIdentityId,
    Username,
)


def _as_uuid(value: Any) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def row_to_account(row: Dict[str, Any]) -> Account:
    """Convert database row to Account domain model.

    Args:
        row: Database row as dict

    Returns:
        Account domain model
    """
    return Account(
        id=AccountId(_as_uuid(row["id"])),
        email=row["email"],
        username=Username(row["username"]),
        has_password=row["has_password"],
        avatar_url=row.get("avatar_url"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def account_to_dict(account: Account) -> Dict[str, Any]:
    """Convert Account domain model to database dict."""
    return account.model_dump()


def row_to_external_identity(row: Dict[str, Any]) -> ExternalIdentity:
    """Convert database row to ExternalIdentity domain model.

    Args:
        row: Database row as dict

    Returns:
        ExternalIdentity domain model
    """
    return ExternalIdentity(
        id=ExternalIdentityId(_as_uuid(row["id"])),
        account_id=AccountId(_as_uuid(row["account_id"])),
        provider=AuthProvider(row["provider"]),
        provider_user_id=row["provider_user_id"],
        provider_display_name=row["provider_display_name"],
        created_at=row["created_at"],
    )


def external_identity_to_dict(identity: ExternalIdentity) -> Dict[str, Any]:
    """Convert ExternalIdentity domain model to database dict."""
    data = identity.model_dump()
    data["provider"] = identity.provider.value
    return data
