"""Audit sink interface."""
from abc import ABC, abstractmethod

from ...value_objects.verification import AuditEvent


class AuditSink(ABC):
    """Interface for recording verification and enrollment events."""

    @abstractmethod
    async def record(self, event: AuditEvent) -> None:
        """
        Record an event.

        Failures may raise; the engine logs them and never lets them fail
        the call that produced the event.
        """
        pass
