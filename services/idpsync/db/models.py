"""
SQLAlchemy database models for the provider registry.

All models use:
- UUIDv7 primary keys (time-sortable)
- snake_case column names
- Plural table names
- TIMESTAMPTZ with UTC for all timestamps
"""

import time
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_uuid7() -> uuid.UUID:
    """Generate a UUIDv7 (time-sortable UUID)."""
    # UUIDv7: timestamp in first 48 bits, version in bits 48-51, random in rest
    timestamp_ms = int(time.time() * 1000)
    rand_bytes = uuid.uuid4().bytes[6:]

    uuid_bytes = (
        timestamp_ms.to_bytes(6, "big")
        + bytes([0x70 | (rand_bytes[0] & 0x0F)])  # Version 7
        + bytes([0x80 | (rand_bytes[1] & 0x3F)])  # Variant
        + rand_bytes[2:]
    )
    return uuid.UUID(bytes=uuid_bytes)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    type_annotation_map = {
        dict[str, Any]: JSON().with_variant(JSONB(), "postgresql"),
    }


class IdentityProviderRecord(Base):
    """Persisted identity provider.

    One row per (origin_key, identity_zone_id). ``config`` holds the JSON
    serialized provider definition; ``type`` tells the authentication runtime
    which definition model to read it with.
    """

    __tablename__ = "identity_providers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid7)
    origin_key: Mapped[str] = mapped_column(String(63), nullable=False)
    identity_zone_id: Mapped[str] = mapped_column(String(36), nullable=False)
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    config: Mapped[str] = mapped_column(Text, nullable=False)

    # Bumped by the store on every update
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    last_modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("origin_key", "identity_zone_id", name="uq_identity_providers_origin"),
    )


class AuditLog(Base):
    """Audit log for registry changes."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid7)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    # Event classification
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # 'admin'
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Actor
    actor_type: Mapped[str] = mapped_column(String(20), nullable=False)  # 'user', 'system'
    actor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Target
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Additional details
    details: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)

    # Result
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_timestamp_event", "timestamp", "event_type"),
        Index("ix_audit_logs_actor", "actor_type", "actor_id"),
    )
