"""In-process stores."""
from .stores import InMemoryAuditSink, InMemoryIdentityStore

__all__ = ["InMemoryAuditSink", "InMemoryIdentityStore"]
