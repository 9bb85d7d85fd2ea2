"""Initial schema - accounts, sessions, invitations, grants, usage, buckets, files, shares

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Types are dialect-neutral so the revision applies to SQLite and PostgreSQL.
Defaults are supplied by the application, not the database.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # accounts table
    # ==========================================================================
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name_digest", sa.String(64), nullable=False),
        sa.Column("password_salt", sa.String(36), nullable=False),
        sa.Column("password_hash", sa.String(64), nullable=False),
        sa.Column("suspended", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name_digest", name="uq_accounts_name_digest"),
    )

    # ==========================================================================
    # sessions table (one row per account)
    # ==========================================================================
    op.create_table(
        "sessions",
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("issued_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("account_id"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("session_id", name="uq_sessions_session_id"),
    )

    # ==========================================================================
    # invitations table
    # ==========================================================================
    op.create_table(
        "invitations",
        sa.Column("code", sa.String(36), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("code"),
    )

    # ==========================================================================
    # quota_grants table
    # ==========================================================================
    op.create_table(
        "quota_grants",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("byte_amount", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("redeemed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("redeemed_by_account_id", sa.Uuid(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["redeemed_by_account_id"],
            ["accounts.id"],
            ondelete="SET NULL",
        ),
        sa.CheckConstraint("byte_amount > 0", name="ck_quota_grants_positive"),
    )

    # ==========================================================================
    # usage table
    # ==========================================================================
    op.create_table(
        "usage",
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("stored_bytes", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("quota_bytes", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("account_id"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
    )

    # ==========================================================================
    # buckets table
    # ==========================================================================
    op.create_table(
        "buckets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("uuid_digest", sa.String(64), nullable=False),
        sa.Column("owner_account_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("uuid_digest", name="uq_buckets_uuid_digest"),
    )

    # A name is taken only while its bucket is live
    op.create_index(
        "uix_buckets_owner_live_name",
        "buckets",
        ["owner_account_id", "name"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    # ==========================================================================
    # files table
    # ==========================================================================
    op.create_table(
        "files",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("uuid_digest", sa.String(64), nullable=False),
        sa.Column("bucket_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=True),
        sa.Column(
            "content_type",
            sa.Text(),
            server_default="application/octet-stream",
            nullable=False,
        ),
        sa.Column("size", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["bucket_id"], ["buckets.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("uuid_digest", name="uq_files_uuid_digest"),
        sa.UniqueConstraint("bucket_id", "name", name="uq_files_bucket_name"),
        sa.CheckConstraint("size >= 0", name="ck_files_size"),
    )

    # ==========================================================================
    # shares table
    # ==========================================================================
    op.create_table(
        "shares",
        sa.Column("token", sa.String(36), nullable=False),
        sa.Column("bucket_id", sa.Uuid(), nullable=False),
        sa.Column("target_type", sa.Text(), nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("token"),
        sa.ForeignKeyConstraint(["bucket_id"], ["buckets.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "target_type IN ('bucket', 'file')",
            name="ck_shares_target_type",
        ),
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("shares")
    op.drop_table("files")
    op.drop_index("uix_buckets_owner_live_name", table_name="buckets")
    op.drop_table("buckets")
    op.drop_table("usage")
    op.drop_table("quota_grants")
    op.drop_table("invitations")
    op.drop_table("sessions")
    op.drop_table("accounts")
