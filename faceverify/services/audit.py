"""Fire-and-forget submission of audit events."""
import asyncio
from typing import Optional, Set

from faceverify.core.logging import get_logger
from faceverify.domain.interfaces.storage.audit_sink import AuditSink
from faceverify.domain.value_objects.verification import AuditEvent

logger = get_logger(__name__)


class AuditRecorder:
    """Schedules audit sink writes without making callers wait for them.

    A sink failure is logged and dropped; it never reaches the call that
    produced the event.
    """

    def __init__(self, sink: Optional[AuditSink] = None) -> None:
        self._sink = sink
        self._pending: Set["asyncio.Task[None]"] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, event: AuditEvent) -> None:
        if self._sink is None:
            return
        task = asyncio.ensure_future(self._write(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, event: AuditEvent) -> None:
        try:
            await self._sink.record(event)
        except Exception as e:
            logger.error(
                "Failed to record audit event",
                event_type=event.event_type,
                identity_id=event.identity_id,
                error=str(e),
            )

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
