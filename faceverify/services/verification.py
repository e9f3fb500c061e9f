"""Single-shot face verification pipeline."""
import asyncio
import time
from typing import Callable, Optional

from faceverify.core.config import settings
from faceverify.core.exceptions import (
    CapabilityFaultError,
    DetectionTimeoutError,
    InvalidFrameError,
    ModelInitError,
    StorageError,
)
from faceverify.core.logging import get_logger
from faceverify.core.utils.image import frame_fingerprint
from faceverify.domain.interfaces.capture.frame_source import Frame
from faceverify.domain.interfaces.storage.identity_store import IdentityStore
from faceverify.domain.value_objects.verification import (
    AuditEvent,
    DetectionOptions,
    VerificationOutcome,
    VerificationResult,
)
from faceverify.services.audit import AuditRecorder
from faceverify.services.cache import DescriptorCache, make_cache_key
from faceverify.services.detection import DetectionRunner
from faceverify.services.matching import MatchingEngine
from faceverify.services.metrics import MetricsTracker
from faceverify.services.model_lifecycle import ModelLifecycleManager

logger = get_logger(__name__)

NOT_INITIALIZED = "not initialized"
NO_FACE_DETECTED = "no face detected"
MULTIPLE_FACES_DETECTED = "multiple faces detected"
NO_STORED_FACE_DATA = "no stored face data"
TIMEOUT = "timeout"


class VerificationPipeline:
    """Turns one frame and a claimed identity into a match decision.

    Example:
        ```python
        pipeline = VerificationPipeline(lifecycle, runner, store, MatchingEngine(),
                                        DescriptorCache(), MetricsTracker(), AuditRecorder())
        result = await pipeline.verify(frame, "user-123")
        ```
    """

    def __init__(
        self,
        lifecycle: ModelLifecycleManager,
        runner: DetectionRunner,
        identity_store: IdentityStore,
        matcher: MatchingEngine,
        cache: DescriptorCache,
        metrics: MetricsTracker,
        audit: AuditRecorder,
        options: Optional[DetectionOptions] = None,
        time_bucket_seconds: float = settings.CACHE_TIME_BUCKET_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the verification pipeline.

        Args:
            lifecycle: Model lifecycle manager
            runner: Detection runner sharing the same capability
            identity_store: Source of enrolled descriptors
            matcher: Matching engine
            cache: Cache of descriptors extracted from recent frames
            metrics: Metrics tracker
            audit: Audit recorder
            options: Detection options used for verification
            time_bucket_seconds: Width of the cache key time bucket
            clock: Wall clock used for the time bucket
        """
        self._lifecycle = lifecycle
        self._runner = runner
        self._identity_store = identity_store
        self._matcher = matcher
        self._cache = cache
        self._metrics = metrics
        self._audit = audit
        self._options = options or DetectionOptions(
            input_size=settings.VERIFY_INPUT_SIZE,
            score_threshold=settings.VERIFY_SCORE_THRESHOLD,
        )
        self._time_bucket_seconds = time_bucket_seconds
        self._clock = clock

    async def _cache_key(self, identity_id: str, frame: Frame) -> str:
        bucket = int(self._clock() // self._time_bucket_seconds) if self._time_bucket_seconds > 0 else 0
        fingerprint = await asyncio.to_thread(frame_fingerprint, frame)
        return make_cache_key(identity_id, fingerprint, bucket)

    async def verify(self, frame: Frame, identity_id: str) -> VerificationResult:
        """Verify that the only face in ``frame`` belongs to ``identity_id``.

        Never raises for expected failures: the returned result carries a
        typed outcome and an error string instead.
        """
        start = time.perf_counter()
        result = await self._verify(frame, identity_id, start)

        self._metrics.record(result.is_match, result.processing_time_ms)
        self._audit.submit(AuditEvent(
            event_type="face_verification",
            identity_id=identity_id,
            success=result.is_match,
            confidence=result.confidence,
            outcome=result.outcome,
            processing_time_ms=result.processing_time_ms,
        ))

        logger.info(
            "Face verification completed",
            identity_id=identity_id,
            outcome=result.outcome.value,
            confidence=round(result.confidence, 4),
            processing_time_ms=round(result.processing_time_ms, 2),
        )
        return result

    async def _verify(self, frame: Frame, identity_id: str, start: float) -> VerificationResult:
        def finish(outcome: VerificationOutcome, error: Optional[str] = None, **fields) -> VerificationResult:
            return VerificationResult(
                is_match=fields.pop("is_match", False),
                confidence=fields.pop("confidence", 0.0),
                error=error,
                outcome=outcome,
                processing_time_ms=(time.perf_counter() - start) * 1000,
                **fields,
            )

        try:
            await self._lifecycle.ensure_ready()
        except ModelInitError as e:
            logger.error("Face models not ready", identity_id=identity_id, error=str(e))
            return finish(VerificationOutcome.NOT_INITIALIZED, NOT_INITIALIZED)

        try:
            key = await self._cache_key(identity_id, frame)
        except InvalidFrameError as e:
            return finish(VerificationOutcome.INVALID_FRAME, str(e))

        descriptor = self._cache.get(key)
        if descriptor is not None:
            self._metrics.record_cache_hit()
        else:
            self._metrics.record_cache_miss()
            try:
                detections = await self._runner.detect(frame, self._options)
            except ModelInitError as e:
                logger.error("Face models failed during detection", identity_id=identity_id, error=str(e))
                return finish(VerificationOutcome.NOT_INITIALIZED, NOT_INITIALIZED)
            except InvalidFrameError as e:
                return finish(VerificationOutcome.INVALID_FRAME, str(e))
            except DetectionTimeoutError:
                return finish(VerificationOutcome.TIMEOUT, TIMEOUT)
            except CapabilityFaultError as e:
                return finish(VerificationOutcome.CAPABILITY_FAULT, str(e))

            if not detections:
                return finish(VerificationOutcome.NO_FACE_DETECTED, NO_FACE_DETECTED)
            if len(detections) > 1:
                return finish(VerificationOutcome.MULTIPLE_FACES_DETECTED, MULTIPLE_FACES_DETECTED)

            descriptor = detections[0].descriptor
            if descriptor is None:
                return finish(VerificationOutcome.CAPABILITY_FAULT, "descriptor extraction failed")
            self._cache.put(key, descriptor)

        try:
            stored = await self._identity_store.get_descriptors(identity_id)
        except StorageError as e:
            logger.error("Failed to read stored descriptors", identity_id=identity_id, error=str(e))
            return finish(VerificationOutcome.STORE_UNAVAILABLE, "identity store unavailable")

        if not stored:
            return finish(VerificationOutcome.NO_STORED_DESCRIPTOR, NO_STORED_FACE_DATA)

        try:
            match = self._matcher.match(descriptor, [d.vector for d in stored])
        except ValueError as e:
            logger.error("Descriptor comparison failed", identity_id=identity_id, error=str(e))
            return finish(VerificationOutcome.CAPABILITY_FAULT, str(e))

        return finish(
            VerificationOutcome.MATCH if match.is_match else VerificationOutcome.LOW_CONFIDENCE,
            is_match=match.is_match,
            confidence=match.confidence,
            distance=match.distance,
        )
