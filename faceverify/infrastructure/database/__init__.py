"""SQLAlchemy persistence for identities and the audit log."""
from .models import AuditLogEntry, Base, Identity
from .stores import SqlAuditSink, SqlIdentityStore

__all__ = [
    "AuditLogEntry",
    "Base",
    "Identity",
    "SqlAuditSink",
    "SqlIdentityStore",
]
