"""SQLAlchemy table definitions for Spoonjoy accounts and identities.

These tables match the schema defined in Alembic migrations. Column
types are dialect-neutral so the same metadata runs on PostgreSQL in
production and SQLite in tests.

The constraint names matter: ``SqlIdentityStore`` maps integrity errors
back to a ``ConflictKind`` by name.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
)

from spoon.domain.service.naming import PROVIDER_DISPLAY_NAME_MAX_LENGTH

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# ACCOUNTS TABLE
# ============================================================================
accounts_table = Table(
    "accounts",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("email", String(320), nullable=False),  # Stored lower-cased
    Column("username", String(64), nullable=False),
    Column("has_password", Boolean, nullable=False, server_default=false()),
    Column("avatar_url", Text, nullable=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    UniqueConstraint("username", name="uq_accounts_username"),
)

# Case-insensitive email uniqueness
Index("uq_accounts_email_lower", func.lower(accounts_table.c.email), unique=True)

# ============================================================================
# EXTERNAL IDENTITIES TABLE (one row per linked OAuth provider)
# ============================================================================
external_identities_table = Table(
    "external_identities",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "account_id",
        Uuid,
        ForeignKey(
            "accounts.id",
            ondelete="RESTRICT",
            name="fk_external_identities_account_id",
        ),
        nullable=False,
    ),
    Column("provider", String(50), nullable=False),  # 'google', 'apple'
    Column("provider_user_id", String(255), nullable=False),  # Provider subject id
    Column(
        "provider_display_name",
        String(PROVIDER_DISPLAY_NAME_MAX_LENGTH),
        nullable=False,
    ),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    UniqueConstraint(
        "provider", "provider_user_id", name="uq_external_identities_subject"
    ),
    UniqueConstraint(
        "account_id", "provider", name="uq_external_identities_account_provider"
    ),
)

Index("idx_external_identities_account_id", external_identities_table.c.account_id)
