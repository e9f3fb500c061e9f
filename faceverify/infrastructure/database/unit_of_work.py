"""Unit of work pattern implementation."""
from types import TracebackType
from typing import AsyncContextManager, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faceverify.infrastructure.database.repositories import AuditLogRepository, IdentityRepository
from faceverify.infrastructure.database.session import get_db_session


class UnitOfWork:
    """One session and transaction shared by the identity and audit repositories.

    The transaction commits when the block exits cleanly and rolls back
    otherwise. The session is closed either way.

    Example:
        ```python
        async with UnitOfWork(session_factory) as uow:
            await uow.identities.set_face_data(identity_id, face_data)
            await uow.audit_log.create(identity_id, "face_enrollment", success=True)
        ```
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize unit of work.

        Args:
            session_factory: Factory for the session opened on entry
        """
        self._session_factory = session_factory
        self._session_scope: Optional[AsyncContextManager[AsyncSession]] = None
        self.session: Optional[AsyncSession] = None
        self.identities: Optional[IdentityRepository] = None
        self.audit_log: Optional[AuditLogRepository] = None

    async def __aenter__(self) -> "UnitOfWork":
        self._session_scope = get_db_session(self._session_factory)
        self.session = await self._session_scope.__aenter__()
        self.identities = IdentityRepository(self.session)
        self.audit_log = AuditLogRepository(self.session)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        try:
            if exc_type is None:
                await self.commit()
        finally:
            # Rolls back on error and always closes the session
            await self._session_scope.__aexit__(exc_type, exc_val, exc_tb)
            self._session_scope = None

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        await self.session.rollback()
