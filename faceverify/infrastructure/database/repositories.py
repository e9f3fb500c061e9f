"""Database repositories for the identity store and audit log."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from faceverify.infrastructure.database.models import AuditLogEntry, Identity


class IdentityRepository:
    """Repository for identity operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def get(self, identity_id: str) -> Optional[Identity]:
        """Get identity by ID, or None if it does not exist."""
        stmt = select(Identity).where(Identity.id == identity_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, identity_id: str) -> Identity:
        """Get identity by ID or create it if it does not exist.

        Args:
            identity_id: External system identity identifier

        Returns:
            Identity: Found or created identity
        """
        identity = await self.get(identity_id)
        if identity is None:
            identity = Identity(id=identity_id, requires_face_verification=False)
            self._session.add(identity)
            await self._session.flush()
        return identity

    async def set_face_data(self, identity_id: str, face_data: Dict[str, Any]) -> Identity:
        """Replace the identity's enrolled face and enable verification.

        Args:
            identity_id: External system identity identifier
            face_data: Serialized descriptor payload

        Returns:
            Identity: Updated identity
        """
        identity = await self.get_or_create(identity_id)
        identity.face_data = face_data
        identity.requires_face_verification = True
        identity.face_verification_enabled_at = datetime.now(timezone.utc)
        await self._session.flush()
        return identity

    async def clear_face_data(self, identity_id: str) -> None:
        """Remove the identity's enrolled face and disable verification."""
        identity = await self.get(identity_id)
        if identity is None:
            return
        identity.face_data = None
        identity.requires_face_verification = False
        await self._session.flush()

    async def touch_last_verification(self, identity_id: str) -> None:
        identity = await self.get_or_create(identity_id)
        identity.last_face_verification = datetime.now(timezone.utc)
        await self._session.flush()


class AuditLogRepository:
    """Repository for audit log operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def create(
        self,
        identity_id: str,
        event_type: str,
        success: bool,
        confidence: Optional[float] = None,
        outcome: Optional[str] = None,
        processing_time_ms: Optional[float] = None,
        extra_data: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AuditLogEntry:
        """Create a new audit log entry.

        Returns:
            AuditLogEntry: Created entry
        """
        entry = AuditLogEntry(
            identity_id=identity_id,
            event_type=event_type,
            success=success,
            confidence=confidence,
            outcome=outcome,
            processing_time_ms=processing_time_ms,
            extra_data=extra_data,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_for_identity(self, identity_id: str, limit: int = 100) -> List[AuditLogEntry]:
        """Get the most recent entries of an identity, newest first."""
        stmt = (
            select(AuditLogEntry)
            .where(AuditLogEntry.identity_id == identity_id)
            .order_by(AuditLogEntry.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
