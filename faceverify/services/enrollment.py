"""Face enrollment service for capturing and storing an identity's descriptor."""
import asyncio
from typing import Optional

import numpy as np

from faceverify.core.config import settings
from faceverify.core.exceptions import (
    CapabilityFaultError,
    LowQualityFaceError,
    MultipleFacesError,
    NoFaceDetectedError,
    StorageError,
)
from faceverify.core.logging import get_logger
from faceverify.core.utils.image import encode_jpeg
from faceverify.domain.entities.face import FaceDescriptor
from faceverify.domain.interfaces.capture.frame_source import Frame
from faceverify.domain.interfaces.storage.identity_store import IdentityStore
from faceverify.domain.interfaces.storage.snapshot_store import SnapshotStore
from faceverify.domain.value_objects.verification import AuditEvent, DetectionOptions
from faceverify.services.audit import AuditRecorder
from faceverify.services.detection import DetectionRunner

logger = get_logger(__name__)


class EnrollmentService:
    """Service for enrolling, checking and removing an identity's face.

    Enrollment requires exactly one face in the frame. The extracted
    descriptor replaces whatever the identity had enrolled before, so an
    identity has at most one descriptor at a time.

    Example:
        ```python
        service = EnrollmentService(runner, identity_store, audit, snapshot_store)
        descriptor = await service.enroll(frame, identity_id="user-123")
        ```
    """

    def __init__(
        self,
        runner: DetectionRunner,
        identity_store: IdentityStore,
        audit: AuditRecorder,
        snapshot_store: Optional[SnapshotStore] = None,
        options: Optional[DetectionOptions] = None,
        min_face_score: float = settings.ENROLL_MIN_FACE_SCORE,
        jpeg_quality: int = settings.SNAPSHOT_JPEG_QUALITY,
    ) -> None:
        """Initialize the enrollment service.

        Args:
            runner: Detection runner
            identity_store: Store receiving the new descriptor
            audit: Audit recorder
            snapshot_store: Optional store for the enrollment snapshot
            options: Detection options used for enrollment
            min_face_score: Lowest detection score accepted for enrollment
            jpeg_quality: JPEG quality of the stored snapshot
        """
        self._runner = runner
        self._identity_store = identity_store
        self._audit = audit
        self._snapshot_store = snapshot_store
        self._options = options or DetectionOptions(
            input_size=settings.ENROLL_INPUT_SIZE,
            score_threshold=settings.ENROLL_SCORE_THRESHOLD,
        )
        self._min_face_score = min_face_score
        self._jpeg_quality = jpeg_quality

    async def enroll(self, frame: Frame, identity_id: str) -> FaceDescriptor:
        """Extract the face in ``frame`` and store it for ``identity_id``.

        Args:
            frame: Encoded image bytes or decoded BGR array
            identity_id: Identity being enrolled

        Returns:
            The newly stored descriptor

        Raises:
            ModelInitError: If the model cannot be made ready
            InvalidFrameError: If the frame cannot be decoded or has no area
            DetectionTimeoutError: If detection timed out
            CapabilityFaultError: If detection or descriptor extraction failed
            NoFaceDetectedError: If the frame has no face
            MultipleFacesError: If the frame has more than one face
            LowQualityFaceError: If the face scored too low
            StorageError: If the descriptor could not be stored
        """
        image, detections = await self._runner.detect_image(frame, self._options)

        if not detections:
            raise NoFaceDetectedError("No face detected in the frame")
        if len(detections) > 1:
            raise MultipleFacesError(
                "Multiple faces detected. Please ensure only one face is visible.",
                {"faces_found": len(detections)},
            )

        detection = detections[0]
        if detection.score < self._min_face_score:
            raise LowQualityFaceError(
                "Face detection quality too low. Please improve lighting and face positioning.",
                {"score": detection.score, "min_score": self._min_face_score},
            )
        if detection.descriptor is None:
            raise CapabilityFaultError("Face descriptor extraction failed")

        image_url = await self._store_snapshot(image, identity_id)
        descriptor = FaceDescriptor(
            identity_id=identity_id,
            vector=detection.descriptor,
            image_url=image_url,
        )

        await self._identity_store.put_descriptor(identity_id, descriptor)
        logger.info(
            "Face enrolled",
            identity_id=identity_id,
            descriptor_id=descriptor.descriptor_id,
            dimension=descriptor.dimension,
            score=round(detection.score, 4),
        )
        self._audit.submit(AuditEvent(
            event_type="face_enrollment",
            identity_id=identity_id,
            success=True,
            confidence=detection.score,
            details={"descriptor_id": descriptor.descriptor_id, "image_url": image_url},
        ))
        return descriptor

    async def _store_snapshot(self, image: np.ndarray, identity_id: str) -> Optional[str]:
        if self._snapshot_store is None:
            return None
        try:
            image_bytes = await asyncio.to_thread(encode_jpeg, image, self._jpeg_quality)
            return await self._snapshot_store.save(identity_id, image_bytes)
        except Exception as e:
            # Enrollment proceeds without an image URL
            logger.error("Failed to store face snapshot", identity_id=identity_id, error=str(e))
            return None

    async def disable(self, identity_id: str) -> None:
        """Remove the identity's enrolled descriptors.

        Raises:
            StorageError: If the descriptors could not be removed
        """
        await self._identity_store.clear_descriptors(identity_id)
        logger.info("Face verification disabled", identity_id=identity_id)
        self._audit.submit(AuditEvent(
            event_type="face_verification_disabled",
            identity_id=identity_id,
            success=True,
        ))

    async def is_enrolled(self, identity_id: str) -> bool:
        try:
            return bool(await self._identity_store.get_descriptors(identity_id))
        except StorageError as e:
            logger.error("Failed to check enrollment", identity_id=identity_id, error=str(e))
            return False
