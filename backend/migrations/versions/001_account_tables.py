"""Create account tables: accounts, profiles, verification_tokens.

Revision ID: 001_account_tables
Revises:
Create Date: 2026-10-17

- accounts: email/password identity, unique email, confirmation flag
- profiles: one display profile per account
- verification_tokens: single-use confirm/reset secrets
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_account_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # =========================================================================
    # accounts
    # =========================================================================
    op.create_table(
        "accounts",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "confirmed",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
    )

    # =========================================================================
    # profiles
    # =========================================================================
    op.create_table(
        "profiles",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column(
            "account_id",
            UUID(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("account_id", name="uq_profiles_account_id"),
    )

    # =========================================================================
    # verification_tokens (secret is the primary key)
    # =========================================================================
    op.create_table(
        "verification_tokens",
        sa.Column("secret", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "kind IN ('confirm', 'reset')", name="ck_verification_tokens_kind"
        ),
    )
    op.create_index(
        "idx_verification_tokens_kind_secret",
        "verification_tokens",
        ["kind", "secret"],
    )
    op.create_index(
        "idx_verification_tokens_expires", "verification_tokens", ["expires"]
    )


def downgrade() -> None:
    op.drop_index("idx_verification_tokens_expires", table_name="verification_tokens")
    op.drop_index(
        "idx_verification_tokens_kind_secret", table_name="verification_tokens"
    )
    op.drop_table("verification_tokens")

    op.drop_table("profiles")
    op.drop_table("accounts")
