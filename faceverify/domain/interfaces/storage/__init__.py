from .audit_sink import AuditSink
from .identity_store import IdentityStore
from .snapshot_store import SnapshotStore

__all__ = ["AuditSink", "IdentityStore", "SnapshotStore"]
