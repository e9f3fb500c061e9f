"""Face verification value objects."""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, Field


class VerificationOutcome(str, Enum):
    """Kind of result a verification call produced.

    MATCH, LOW_CONFIDENCE, NO_FACE_DETECTED, MULTIPLE_FACES_DETECTED and
    NO_STORED_DESCRIPTOR are expected results. The remaining members report
    faults that were surfaced in the result instead of raised.
    """
    MATCH = "match"
    LOW_CONFIDENCE = "low_confidence"
    NO_FACE_DETECTED = "no_face_detected"
    MULTIPLE_FACES_DETECTED = "multiple_faces_detected"
    NO_STORED_DESCRIPTOR = "no_stored_descriptor"
    NOT_INITIALIZED = "not_initialized"
    INVALID_FRAME = "invalid_frame"
    TIMEOUT = "timeout"
    CAPABILITY_FAULT = "capability_fault"
    STORE_UNAVAILABLE = "store_unavailable"


class DetectionOptions(BaseModel):
    """Options passed to the detection capability."""
    input_size: int = Field(512, gt=0, description="Square input resolution for the detector")
    score_threshold: float = Field(0.4, ge=0.0, le=1.0, description="Minimum detection score")


class MatchResult(BaseModel):
    """Best match of a descriptor against a set of stored descriptors."""
    distance: float = Field(..., ge=0.0, description="Euclidean distance to the closest stored descriptor")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence derived from the distance")
    is_match: bool = Field(..., description="Whether both thresholds were met")
    best_index: int = Field(..., ge=0, description="Index of the closest stored descriptor")


class VerificationResult(BaseModel):
    """Result of one verification call."""
    is_match: bool = Field(..., description="Whether the frame matches the claimed identity")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Match confidence (0-1)")
    error: Optional[str] = Field(None, description="Reason the call did not produce a match decision")
    processing_time_ms: float = Field(0.0, ge=0.0, description="Wall time spent in the call")
    outcome: VerificationOutcome = Field(..., description="Typed outcome of the call")
    distance: Optional[float] = Field(None, description="Distance to the closest stored descriptor")


class ModelState(BaseModel):
    """Snapshot of the model lifecycle."""
    loaded_components: FrozenSet[str] = Field(default_factory=frozenset)
    is_initialized: bool = False
    last_attempt_at: Optional[float] = Field(None, description="Monotonic time of the last load attempt")


class CacheStats(BaseModel):
    """Descriptor cache counters."""
    size: int
    max_entries: int
    hits: int
    misses: int
    evictions: int


class MetricsSnapshot(BaseModel):
    """Performance counters accumulated since the last reset."""
    total_verifications: int = 0
    successful_verifications: int = 0
    average_processing_time_ms: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0

    @property
    def success_rate(self) -> float:
        """Percentage of verifications that matched."""
        if self.total_verifications == 0:
            return 0.0
        return self.successful_verifications / self.total_verifications * 100


class AuditEvent(BaseModel):
    """Event written to the audit sink."""
    event_type: str = Field(..., description="face_verification, face_enrollment or face_verification_disabled")
    identity_id: str
    success: bool
    confidence: Optional[float] = None
    outcome: Optional[VerificationOutcome] = None
    processing_time_ms: Optional[float] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
