"""Service interfaces package."""
from .capture import Frame, FrameSource, FrameSourceClosedError
from .recognition import FaceCapability
from .storage import AuditSink, IdentityStore, SnapshotStore

__all__ = [
    "AuditSink",
    "FaceCapability",
    "Frame",
    "FrameSource",
    "FrameSourceClosedError",
    "IdentityStore",
    "SnapshotStore",
]
