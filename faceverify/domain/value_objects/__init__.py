"""Value objects package."""
from .verification import (
    AuditEvent,
    CacheStats,
    DetectionOptions,
    MatchResult,
    MetricsSnapshot,
    ModelState,
    VerificationOutcome,
    VerificationResult,
)

__all__ = [
    "AuditEvent",
    "CacheStats",
    "DetectionOptions",
    "MatchResult",
    "MetricsSnapshot",
    "ModelState",
    "VerificationOutcome",
    "VerificationResult",
]
