"""initial_identity_schema

Create the account and OAuth identity schema for Spoonjoy:
- Accounts (one per person; case-insensitively unique email, unique username)
- External identities (one row per linked OAuth provider: Google, Apple)

Revision ID: 3c1f0a9d2b7e
Revises:
Create Date: 2026-10-18 09:12:44.318204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1f0a9d2b7e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # ========================================================================
    # ACCOUNTS table
    # ========================================================================
    op.create_table(
        "accounts",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),  # Stored lower-cased
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column(
            "has_password", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_accounts_username"),
    )
    op.create_index(
        "uq_accounts_email_lower",
        "accounts",
        [sa.text("lower(email)")],
        unique=True,
    )

    # ========================================================================
    # EXTERNAL_IDENTITIES table (one row per linked OAuth provider)
    # ========================================================================
    op.create_table(
        "external_identities",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("account_id", sa.UUID(), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),  # 'google', 'apple'
        sa.Column(
            "provider_user_id", sa.String(255), nullable=False
        ),  # Provider subject id
        sa.Column("provider_display_name", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_external_identities_account_id",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "provider", "provider_user_id", name="uq_external_identities_subject"
        ),
        sa.UniqueConstraint(
            "account_id", "provider", name="uq_external_identities_account_provider"
        ),
    )
    op.create_index(
        "idx_external_identities_account_id", "external_identities", ["account_id"]
    )

    # Trigger function to update updated_at timestamp
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)

    op.execute("""
        CREATE TRIGGER update_accounts_updated_at
        BEFORE UPDATE ON accounts
        FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
    """)


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP TRIGGER IF EXISTS update_accounts_updated_at ON accounts")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    # Drop tables (in reverse order of dependencies)
    op.drop_index("idx_external_identities_account_id", table_name="external_identities")
    op.drop_table("external_identities")
    op.drop_index("uq_accounts_email_lower", table_name="accounts")
    op.drop_table("accounts")
