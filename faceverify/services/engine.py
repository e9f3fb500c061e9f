"""Face verification engine facade.

Wires one lifecycle manager, detection runner, cache, metrics tracker and
audit recorder around a capability and an identity store, and exposes the
single-shot, enrollment and real-time operations on top of them.
"""
from typing import List, Optional

from faceverify.core.config import Settings, settings
from faceverify.core.logging import get_logger
from faceverify.domain.entities.face import FaceDescriptor
from faceverify.domain.interfaces.capture.frame_source import Frame, FrameSource
from faceverify.domain.interfaces.recognition.face_capability import FaceCapability
from faceverify.domain.interfaces.storage.audit_sink import AuditSink
from faceverify.domain.interfaces.storage.identity_store import IdentityStore
from faceverify.domain.interfaces.storage.snapshot_store import SnapshotStore
from faceverify.domain.value_objects.verification import (
    CacheStats,
    DetectionOptions,
    MetricsSnapshot,
    ModelState,
    VerificationResult,
)
from faceverify.services.audit import AuditRecorder
from faceverify.services.cache import DescriptorCache
from faceverify.services.detection import DetectionRunner
from faceverify.services.enrollment import EnrollmentService
from faceverify.services.matching import MatchingEngine
from faceverify.services.metrics import MetricsTracker
from faceverify.services.model_lifecycle import ModelLifecycleManager
from faceverify.services.realtime import RealTimeVerificationLoop, ResultCallback
from faceverify.services.verification import VerificationPipeline

logger = get_logger(__name__)


class FaceVerificationEngine:
    """Entry point for verifying and enrolling faces.

    Example:
        ```python
        engine = FaceVerificationEngine(InsightFaceCapability(), InMemoryIdentityStore())
        await engine.enroll(enrollment_frame, "user-123")
        result = await engine.verify(frame, "user-123")
        ```
    """

    def __init__(
        self,
        capability: FaceCapability,
        identity_store: IdentityStore,
        audit_sink: Optional[AuditSink] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        config: Settings = settings,
    ) -> None:
        self._config = config
        self._identity_store = identity_store

        self.lifecycle = ModelLifecycleManager(
            capability,
            max_attempts=config.MODEL_INIT_MAX_ATTEMPTS,
            initial_backoff=config.MODEL_INIT_INITIAL_BACKOFF,
            backoff_multiplier=config.MODEL_INIT_BACKOFF_MULTIPLIER,
            timeout=config.MODEL_INIT_TIMEOUT,
        )
        self.runner = DetectionRunner(
            capability,
            self.lifecycle,
            cooldown_ms=config.DETECTION_COOLDOWN_MS,
            timeout=config.DETECTION_TIMEOUT,
            max_attempts=config.DETECTION_MAX_ATTEMPTS,
            retry_delay=config.DETECTION_RETRY_DELAY,
            max_pixels=config.MAX_IMAGE_PIXELS,
        )
        self.matcher = MatchingEngine(
            max_distance=config.MATCH_MAX_DISTANCE,
            confidence_threshold=config.MATCH_CONFIDENCE_THRESHOLD,
            exponent=config.CONFIDENCE_EXPONENT,
        )
        self.cache = DescriptorCache(max_entries=config.CACHE_MAX_ENTRIES)
        self.metrics = MetricsTracker()
        self.audit = AuditRecorder(audit_sink)

        self.verification = VerificationPipeline(
            self.lifecycle,
            self.runner,
            identity_store,
            self.matcher,
            self.cache,
            self.metrics,
            self.audit,
            options=DetectionOptions(
                input_size=config.VERIFY_INPUT_SIZE,
                score_threshold=config.VERIFY_SCORE_THRESHOLD,
            ),
            time_bucket_seconds=config.CACHE_TIME_BUCKET_SECONDS,
        )
        self.enrollment = EnrollmentService(
            self.runner,
            identity_store,
            self.audit,
            snapshot_store=snapshot_store,
            options=DetectionOptions(
                input_size=config.ENROLL_INPUT_SIZE,
                score_threshold=config.ENROLL_SCORE_THRESHOLD,
            ),
            min_face_score=config.ENROLL_MIN_FACE_SCORE,
            jpeg_quality=config.SNAPSHOT_JPEG_QUALITY,
        )
        self._loops: List[RealTimeVerificationLoop] = []

    @property
    def is_ready(self) -> bool:
        return self.lifecycle.is_ready

    async def ensure_ready(self) -> None:
        await self.lifecycle.ensure_ready()

    def preload(self):
        """Start loading the models in the background."""
        return self.lifecycle.preload()

    async def verify(self, frame: Frame, identity_id: str) -> VerificationResult:
        return await self.verification.verify(frame, identity_id)

    async def enroll(self, frame: Frame, identity_id: str) -> FaceDescriptor:
        return await self.enrollment.enroll(frame, identity_id)

    async def disable(self, identity_id: str) -> None:
        await self.enrollment.disable(identity_id)
        self.cache.invalidate(f"{identity_id}:")

    async def is_enrolled(self, identity_id: str) -> bool:
        return await self.enrollment.is_enrolled(identity_id)

    def start_real_time(
        self,
        identity_id: str,
        frame_source: FrameSource,
        on_result: Optional[ResultCallback] = None,
        interval: Optional[float] = None,
    ) -> RealTimeVerificationLoop:
        """Start verifying frames from ``frame_source`` periodically.

        Args:
            identity_id: Identity every frame is verified against
            frame_source: Capture source, released when the loop ends
            on_result: Optional callback receiving every result
            interval: Seconds between ticks, defaults to ``REALTIME_INTERVAL``

        Returns:
            Handle of the started loop
        """
        self._loops = [loop for loop in self._loops if loop.is_running]
        loop = RealTimeVerificationLoop(
            self.verify,
            frame_source,
            identity_id,
            interval=interval if interval is not None else self._config.REALTIME_INTERVAL,
            on_result=on_result,
            reinitialize=self.lifecycle.reinitialize,
            reinit_delay=self._config.REALTIME_REINIT_DELAY,
            max_consecutive_errors=self._config.REALTIME_MAX_CONSECUTIVE_ERRORS,
            buffer_size=self._config.REALTIME_RESULT_BUFFER,
        )
        self._loops.append(loop.start())
        return loop

    def metrics_snapshot(self) -> MetricsSnapshot:
        return self.metrics.snapshot()

    def reset_metrics(self) -> None:
        self.metrics.reset()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    def model_state(self) -> ModelState:
        return self.lifecycle.state

    async def close(self) -> None:
        """Stop every live real-time loop and wait for pending audit writes."""
        loops, self._loops = self._loops, []
        for loop in loops:
            loop.stop()
        for loop in loops:
            await loop.wait_closed()
        await self.audit.flush()
        logger.info("Face verification engine closed", stopped_loops=len(loops))
