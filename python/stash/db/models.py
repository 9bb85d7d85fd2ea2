"""SQLAlchemy ORM models for Stash.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are dialect-neutral so the same models run on SQLite (default,
tests) and PostgreSQL.

Identifier policy:
- Accounts, buckets and files have random internal ids that never leave the
  service. Buckets and files also store uuid_digest = digest(id), the only
  form returned to callers and the only form accepted back.
- Session ids, share tokens, invitation codes and grant ids are random
  tokens that callers hold directly.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Timezone-aware current time used for all timestamps."""
    return datetime.now(UTC)


class UtcDateTime(TypeDecorator):
    """Timestamp stored in UTC and always loaded timezone-aware.

    SQLite keeps no offset, so values read back from it are naive; they are
    tagged UTC on load. Aware values are converted to UTC before storing.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class ShareTargetType(str, PyEnum):
    """Kinds of object a share token can expose."""

    bucket = "bucket"
    file = "file"


# =============================================================================
# Identity
# =============================================================================


class Account(Base):
    """Pseudonymous account keyed by the digest of its name.

    The password digest sent by clients is stored only as
    digest(password_salt + password digest).
    """

    __tablename__ = "accounts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name_digest: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    password_salt: Mapped[str] = mapped_column(String(36), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    suspended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )

    # Relationships
    buckets: Mapped[list["Bucket"]] = relationship("Bucket", back_populates="owner")
    session: Mapped["AccountSession | None"] = relationship(
        "AccountSession", back_populates="account", uselist=False
    )
    usage: Mapped["UsageRecord | None"] = relationship(
        "UsageRecord", back_populates="account", uselist=False
    )


class AccountSession(Base):
    """The single active session of an account.

    account_id is the primary key, so issuing a session replaces the
    previous one in a single row write.
    """

    __tablename__ = "sessions"

    account_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    session_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )

    account: Mapped["Account"] = relationship("Account", back_populates="session")


class Invitation(Base):
    """Single-use signup invitation."""

    __tablename__ = "invitations"

    code: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )
    consumed_at: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)


# =============================================================================
# Accounting
# =============================================================================


class QuotaGrant(Base):
    """One-time credit that raises an account's quota."""

    __tablename__ = "quota_grants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    byte_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )
    redeemed_at: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)
    redeemed_by_account_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (CheckConstraint("byte_amount > 0", name="ck_quota_grants_positive"),)


class UsageRecord(Base):
    """Stored and permitted bytes for an account."""

    __tablename__ = "usage"

    account_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    stored_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    quota_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )

    account: Mapped["Account"] = relationship("Account", back_populates="usage")


# =============================================================================
# Storage
# =============================================================================


class Bucket(Base):
    """Named container of files owned by one account.

    Deletion is soft: deleted_at is set and the name becomes free for a new
    bucket. Live-name uniqueness is enforced by a partial unique index.
    """

    __tablename__ = "buckets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    uuid_digest: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    owner_account_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)

    __table_args__ = (
        Index(
            "uix_buckets_owner_live_name",
            "owner_account_id",
            "name",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    # Relationships
    owner: Mapped["Account"] = relationship("Account", back_populates="buckets")
    files: Mapped[list["StoredFile"]] = relationship(
        "StoredFile", back_populates="bucket", order_by="StoredFile.name"
    )
    shares: Mapped[list["Share"]] = relationship(
        "Share", back_populates="bucket", order_by="Share.created_at"
    )

    @property
    def is_live(self) -> bool:
        return self.deleted_at is None


class StoredFile(Base):
    """File inside a bucket: content held in the blob store plus a metadata map.

    storage_path is None until content is uploaded. Deletion is hard.
    """

    __tablename__ = "files"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    uuid_digest: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    bucket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("buckets.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    storage_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_type: Mapped[str] = mapped_column(
        Text, default="application/octet-stream", nullable=False
    )
    size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("bucket_id", "name", name="uq_files_bucket_name"),
        CheckConstraint("size >= 0", name="ck_files_size"),
    )

    bucket: Mapped["Bucket"] = relationship("Bucket", back_populates="files")


class Share(Base):
    """Public, unauthenticated access token for a bucket or a file.

    name is a snapshot of the target's name at share time.
    """

    __tablename__ = "shares"

    token: Mapped[str] = mapped_column(String(36), primary_key=True)
    bucket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("buckets.id", ondelete="CASCADE"), nullable=False
    )
    target_type: Mapped[str] = mapped_column(Text, nullable=False)
    target_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "target_type IN ('bucket', 'file')",
            name="ck_shares_target_type",
        ),
    )

    bucket: Mapped["Bucket"] = relationship("Bucket", back_populates="shares")
