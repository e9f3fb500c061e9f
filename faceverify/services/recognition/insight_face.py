"""
InsightFace-based implementation of the face capability.

This module provides a concrete implementation of the face capability using
the InsightFace model zoo. Unlike ``FaceAnalysis``, which loads every model of
a pack in one go, components are loaded one at a time so a failed load can be
retried without reloading the pieces that already succeeded.

Key Features:
    - Per-component model loading (detection, landmarks, recognition)
    - Face detection with a per-call input size and score threshold
    - L2-normalized embedding extraction
    - Normalized coordinate system (0-1)

Example:
    ```python
    capability = InsightFaceCapability()
    for name in capability.component_names:
        await capability.load(name)
    detections = await capability.detect(image, DetectionOptions(input_size=512))
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    set MODEL_PROVIDERS to "CUDAExecutionProvider,CPUExecutionProvider".
"""
import asyncio
import glob
import os.path as osp
import threading
from typing import Any, Dict, List, Optional, Sequence, Set

import numpy as np
from insightface.app.common import Face as InsightFace
from insightface.model_zoo import get_model
from insightface.utils import ensure_available

from faceverify.core.config import settings
from faceverify.core.exceptions import ModelNotReadyError
from faceverify.core.logging import get_logger
from faceverify.domain.entities.face import BoundingBox, Detection
from faceverify.domain.interfaces.recognition.face_capability import FaceCapability
from faceverify.domain.value_objects.verification import DetectionOptions

logger = get_logger(__name__)

DETECTION = "detection"


class InsightFaceCapability(FaceCapability):
    """
    InsightFace model-zoo implementation of the face capability.

    Attributes:
        model_name: Name of the InsightFace model pack (e.g. buffalo_l)
        root: Directory where model packs are cached

    Performance Characteristics:
        - Detection time: ~50ms per face
        - Memory usage: ~1-2GB
        - Descriptor: 512-d ArcFace embedding, L2-normalized

    Note:
        Unit-length embeddings put the default MATCH_MAX_DISTANCE (0.4) and
        MATCH_CONFIDENCE_THRESHOLD (0.6) at a distance of about 0.116, i.e. a
        cosine similarity near 0.993. Live captures of an enrolled face rarely
        get that close, so retune both settings for this capability.
    """

    def __init__(
        self,
        model_name: str = settings.MODEL_NAME,
        root: str = settings.MODEL_CACHE_DIR,
        providers: Optional[Sequence[str]] = None,
        components: Optional[Sequence[str]] = None,
        ctx_id: int = 0,
        det_size: int = 640,
    ) -> None:
        """Store configuration; models are loaded on demand."""
        self.model_name = model_name
        self.root = root
        self._providers = list(providers or settings.model_providers)
        self._components = tuple(components or settings.model_components)
        if DETECTION not in self._components:
            raise ValueError("The detection component is required")
        self._ctx_id = ctx_id
        self._det_size = det_size
        self._models: Dict[str, Any] = {}
        self._probed_files: Set[str] = set()
        self._model_files: Optional[List[str]] = None
        # Model objects are not safe for concurrent inference
        self._inference_lock = threading.Lock()

    @property
    def component_names(self) -> Sequence[str]:
        return self._components

    def is_loaded(self, component_name: str) -> bool:
        return component_name in self._models

    async def load(self, component_name: str) -> None:
        if component_name not in self._components:
            raise ValueError(f"Unknown model component: {component_name}")
        await asyncio.to_thread(self._load_component, component_name)

    def _discover_model_files(self) -> List[str]:
        if self._model_files is None:
            model_dir = ensure_available("models", self.model_name, root=self.root)
            self._model_files = sorted(glob.glob(osp.join(model_dir, "*.onnx")))
            logger.debug("Discovered model files", model_dir=model_dir, count=len(self._model_files))
        return self._model_files

    def _load_component(self, component_name: str) -> None:
        if component_name in self._models:
            return

        for onnx_file in self._discover_model_files():
            if onnx_file in self._probed_files:
                continue
            model = get_model(onnx_file, providers=self._providers)
            self._probed_files.add(onnx_file)
            if model is None:
                logger.warning("Model not recognized", onnx_file=onnx_file)
                continue

            taskname = model.taskname
            if taskname not in self._components or taskname in self._models:
                continue

            if taskname == DETECTION:
                model.prepare(self._ctx_id, input_size=(self._det_size, self._det_size))
            else:
                model.prepare(self._ctx_id)
            self._models[taskname] = model
            logger.debug("Prepared model", taskname=taskname, onnx_file=onnx_file)

            if taskname == component_name:
                return

        if component_name not in self._models:
            raise RuntimeError(f"Model component {component_name} not found in pack {self.model_name}")

    async def detect(self, image: np.ndarray, options: DetectionOptions) -> List[Detection]:
        missing = [name for name in self._components if name not in self._models]
        if missing:
            raise ModelNotReadyError(f"Face models not initialized: {', '.join(missing)}")
        return await asyncio.to_thread(self._detect_sync, image, options)

    def _detect_sync(self, image: np.ndarray, options: DetectionOptions) -> List[Detection]:
        """
        Run detection and every other loaded model on the image.

        Mirrors ``FaceAnalysis.get`` so landmark and recognition models
        enrich each detected face in place.
        """
        detector = self._models[DETECTION]
        with self._inference_lock:
            detector.det_thresh = options.score_threshold
            bboxes, kpss = detector.detect(
                image,
                input_size=(options.input_size, options.input_size),
                max_num=0,
                metric="default",
            )
            if bboxes.shape[0] == 0:
                return []

            faces = []
            for i in range(bboxes.shape[0]):
                face = InsightFace(
                    bbox=bboxes[i, 0:4],
                    kps=kpss[i] if kpss is not None else None,
                    det_score=bboxes[i, 4],
                )
                for taskname, model in self._models.items():
                    if taskname == DETECTION:
                        continue
                    model.get(image, face)
                faces.append(face)

        height, width = image.shape[:2]
        return [self._convert_to_detection(face, height, width) for face in faces]

    def _convert_to_detection(self, face_data: InsightFace, height: int, width: int) -> Detection:
        """
        Convert an InsightFace result to our Detection domain model.

        Args:
            face_data: Face detection result from InsightFace
            height: Image height in pixels
            width: Image width in pixels

        Returns:
            Detection with normalized coordinates (0-1)
        """
        bbox = np.asarray(face_data.bbox, dtype=np.float32)
        left = float(np.clip(bbox[0], 0, width))
        top = float(np.clip(bbox[1], 0, height))
        right = float(np.clip(bbox[2], 0, width))
        bottom = float(np.clip(bbox[3], 0, height))

        landmarks = face_data.get("landmark_2d_106")
        if landmarks is None:
            landmarks = face_data.get("kps")

        descriptor = None
        if face_data.get("embedding") is not None:
            descriptor = face_data.normed_embedding

        return Detection(
            bounding_box=BoundingBox(
                left=left / width,
                top=top / height,
                width=(right - left) / width,
                height=(bottom - top) / height,
            ),
            score=float(face_data.det_score),
            landmarks=landmarks,
            descriptor=descriptor,
        )
