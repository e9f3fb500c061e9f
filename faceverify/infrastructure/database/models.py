"""SQLAlchemy models for the identity store and audit log."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Identity(Base):
    """Identity record holding the enrolled face."""

    __tablename__ = "identities"
    __table_args__ = (
        Index("idx_identities_face_verification", "requires_face_verification"),
    )

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="External system identity identifier"
    )
    face_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Enrolled descriptor, timestamp and snapshot URL"
    )
    requires_face_verification: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )
    face_verification_enabled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    last_face_verification: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )


class AuditLogEntry(Base):
    """Verification, enrollment and disable events."""

    __tablename__ = "face_verification_audit"
    __table_args__ = (
        Index("idx_audit_identity_created", "identity_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    identity_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("identities.id", ondelete="CASCADE"),
        nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    outcome: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    processing_time_ms: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    extra_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Additional event context"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )
