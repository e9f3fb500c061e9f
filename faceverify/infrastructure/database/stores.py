"""SQLAlchemy-backed identity store and audit sink."""
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faceverify.core.exceptions import StorageError
from faceverify.core.logging import get_logger
from faceverify.domain.entities.face import FaceDescriptor
from faceverify.domain.interfaces.storage.audit_sink import AuditSink
from faceverify.domain.interfaces.storage.identity_store import IdentityStore
from faceverify.domain.value_objects.verification import AuditEvent
from faceverify.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


class SqlIdentityStore(IdentityStore):
    """Identity store keeping one enrolled descriptor per identity row.

    The descriptor lives in the identity's ``face_data`` JSON column, so a
    new enrollment overwrites the previous one.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_descriptors(self, identity_id: str) -> List[FaceDescriptor]:
        try:
            async with UnitOfWork(self._session_factory) as uow:
                identity = await uow.identities.get(identity_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read face data for {identity_id}: {e}") from e

        if identity is None or not identity.face_data or not identity.face_data.get("descriptor"):
            return []
        try:
            return [FaceDescriptor.from_face_data(identity_id, identity.face_data)]
        except (KeyError, ValueError) as e:
            logger.error("Stored face data is corrupt", identity_id=identity_id, error=str(e))
            return []

    async def put_descriptor(self, identity_id: str, descriptor: FaceDescriptor) -> None:
        try:
            async with UnitOfWork(self._session_factory) as uow:
                await uow.identities.set_face_data(identity_id, descriptor.to_face_data())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to store face data for {identity_id}: {e}") from e

    async def clear_descriptors(self, identity_id: str) -> None:
        try:
            async with UnitOfWork(self._session_factory) as uow:
                await uow.identities.clear_face_data(identity_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to clear face data for {identity_id}: {e}") from e


class SqlAuditSink(AuditSink):
    """Audit sink writing to the ``face_verification_audit`` table.

    A successful verification also stamps the identity's
    ``last_face_verification``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, event: AuditEvent) -> None:
        try:
            async with UnitOfWork(self._session_factory) as uow:
                await uow.identities.get_or_create(event.identity_id)
                await uow.audit_log.create(
                    identity_id=event.identity_id,
                    event_type=event.event_type,
                    success=event.success,
                    confidence=event.confidence,
                    outcome=event.outcome.value if event.outcome else None,
                    processing_time_ms=event.processing_time_ms,
                    extra_data=event.details or None,
                    created_at=event.created_at,
                )
                if event.event_type == "face_verification" and event.success:
                    await uow.identities.touch_last_verification(event.identity_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to record audit event: {e}") from e
