"""In-process identity store and audit sink."""
from typing import Dict, List

from faceverify.domain.entities.face import FaceDescriptor
from faceverify.domain.interfaces.storage.audit_sink import AuditSink
from faceverify.domain.interfaces.storage.identity_store import IdentityStore
from faceverify.domain.value_objects.verification import AuditEvent


class InMemoryIdentityStore(IdentityStore):
    """Identity store kept in a dictionary, for single-process use and tests."""

    def __init__(self) -> None:
        self._descriptors: Dict[str, List[FaceDescriptor]] = {}

    async def get_descriptors(self, identity_id: str) -> List[FaceDescriptor]:
        return list(self._descriptors.get(identity_id, []))

    async def put_descriptor(self, identity_id: str, descriptor: FaceDescriptor) -> None:
        if descriptor.identity_id != identity_id:
            raise ValueError("Descriptor belongs to a different identity")
        self._descriptors[identity_id] = [descriptor]

    async def clear_descriptors(self, identity_id: str) -> None:
        self._descriptors.pop(identity_id, None)


class InMemoryAuditSink(AuditSink):
    """Audit sink that keeps events in a list."""

    def __init__(self) -> None:
        self.events: List[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)
