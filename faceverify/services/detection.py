"""Throttled, time-boxed and retried invocation of the face capability."""
import asyncio
import time
from typing import List, Optional, Tuple

import numpy as np

from faceverify.core.config import settings
from faceverify.core.exceptions import (
    CapabilityFaultError,
    DetectionTimeoutError,
    InvalidFrameError,
    ModelInitError,
    ModelNotReadyError,
    RetryExhaustedError,
)
from faceverify.core.logging import get_logger
from faceverify.core.retry import RetryPolicy, retry_async
from faceverify.core.utils.image import load_frame
from faceverify.domain.entities.face import Detection
from faceverify.domain.interfaces.capture.frame_source import Frame
from faceverify.domain.interfaces.recognition.face_capability import FaceCapability
from faceverify.domain.value_objects.verification import DetectionOptions
from faceverify.services.model_lifecycle import ModelLifecycleManager

logger = get_logger(__name__)

MODEL_FAULT_MARKERS = ("not initialized", "model", "undefined")


def is_model_fault(error: BaseException) -> bool:
    """Whether a detection failure points at unloaded or broken models."""
    if isinstance(error, ModelNotReadyError):
        return True
    if isinstance(error, asyncio.TimeoutError):
        return False
    text = str(error).lower()
    return any(marker in text for marker in MODEL_FAULT_MARKERS)


class DetectionRunner:
    """Runs the capability on one frame for the verification and enrollment pipelines.

    Consecutive capability invocations are spaced by at least the cooldown,
    whoever the caller is. A failed detection is retried once, after
    reinitializing the model when the failure looks like a model problem.
    """

    def __init__(
        self,
        capability: FaceCapability,
        lifecycle: ModelLifecycleManager,
        cooldown_ms: float = settings.DETECTION_COOLDOWN_MS,
        timeout: float = settings.DETECTION_TIMEOUT,
        max_attempts: int = settings.DETECTION_MAX_ATTEMPTS,
        retry_delay: float = settings.DETECTION_RETRY_DELAY,
        max_pixels: Optional[int] = settings.MAX_IMAGE_PIXELS,
    ) -> None:
        """Initialize the detection runner.

        Args:
            capability: Face detection-and-description capability
            lifecycle: Lifecycle manager of the same capability
            cooldown_ms: Minimum spacing between capability invocations
            timeout: Deadline in seconds for one capability invocation
            max_attempts: Detection attempts, the first one included
            retry_delay: Seconds to wait before retrying
            max_pixels: Frames above this size are downscaled
        """
        self._capability = capability
        self._lifecycle = lifecycle
        self._cooldown = cooldown_ms / 1000.0
        self._timeout = timeout
        self._policy = RetryPolicy(max_attempts=max_attempts, initial_delay=retry_delay, multiplier=1.0)
        self._max_pixels = max_pixels
        self._cooldown_lock = asyncio.Lock()
        self._last_invocation: Optional[float] = None

    async def wait_for_cooldown(self) -> float:
        """Sleep until the cooldown since the previous invocation has elapsed.

        Returns:
            Seconds slept
        """
        async with self._cooldown_lock:
            waited = 0.0
            if self._last_invocation is not None:
                remaining = self._cooldown - (time.monotonic() - self._last_invocation)
                if remaining > 0:
                    await asyncio.sleep(remaining)
                    waited = remaining
            self._last_invocation = time.monotonic()
            return waited

    async def detect(self, frame: Frame, options: DetectionOptions) -> List[Detection]:
        """Detect faces in a frame.

        Args:
            frame: Encoded image bytes or decoded BGR array
            options: Input resolution and score threshold

        Returns:
            Detections reported by the capability

        Raises:
            ModelInitError: If the model cannot be made ready
            InvalidFrameError: If the frame cannot be decoded or has no area
            DetectionTimeoutError: If the last attempt timed out
            CapabilityFaultError: If the last attempt failed otherwise
        """
        _, detections = await self.detect_image(frame, options)
        return detections

    async def detect_image(self, frame: Frame, options: DetectionOptions) -> Tuple[np.ndarray, List[Detection]]:
        """Same as ``detect``, also returning the decoded image the capability saw."""
        await self._lifecycle.ensure_ready()
        await self.wait_for_cooldown()
        # CPU-bound, kept off the event loop
        image = await asyncio.to_thread(load_frame, frame, self._max_pixels)

        attempts = 0

        async def attempt() -> List[Detection]:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                await self.wait_for_cooldown()
            return await self._invoke(image, options)

        try:
            detections = await retry_async(
                attempt,
                self._policy,
                description="face detection",
                give_up_on=(InvalidFrameError, ModelInitError),
                should_reinitialize=is_model_fault,
                reinitialize=self._lifecycle.reinitialize,
            )
        except RetryExhaustedError as e:
            if isinstance(e.last_error, asyncio.TimeoutError):
                raise DetectionTimeoutError(
                    f"Face detection timed out after {e.attempts} attempts",
                    {"timeout": self._timeout},
                ) from e
            raise CapabilityFaultError(
                f"Face detection failed after {e.attempts} attempts: {e.last_error}"
            ) from e
        return image, detections

    async def _invoke(self, image, options: DetectionOptions) -> List[Detection]:
        start = time.perf_counter()
        detections = await asyncio.wait_for(
            self._capability.detect(image, options),
            timeout=self._timeout,
        )
        if not isinstance(detections, list):
            raise CapabilityFaultError("Capability returned invalid detection results")

        logger.debug(
            "Face detection completed",
            faces_found=len(detections),
            processing_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return detections
