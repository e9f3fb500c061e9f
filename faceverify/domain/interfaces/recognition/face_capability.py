"""Face detection-and-description capability interface."""
from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np

from ...entities.face import Detection
from ...value_objects.verification import DetectionOptions


class FaceCapability(ABC):
    """Interface for the pluggable face detection and description models.

    The engine never detects faces itself; it wraps, throttles and
    interprets an implementation of this interface.
    """

    @property
    @abstractmethod
    def component_names(self) -> Sequence[str]:
        """Names of the model components that must be loaded before detection."""
        pass

    @abstractmethod
    async def load(self, component_name: str) -> None:
        """
        Load one model component.

        Args:
            component_name: One of ``component_names``

        Raises:
            Exception: Any failure; the lifecycle manager retries it
        """
        pass

    @abstractmethod
    def is_loaded(self, component_name: str) -> bool:
        """Whether the given component is loaded and usable."""
        pass

    @abstractmethod
    async def detect(self, image: np.ndarray, options: DetectionOptions) -> List[Detection]:
        """
        Detect faces and extract their descriptors.

        Args:
            image: Decoded BGR image (H, W, 3)
            options: Input resolution and score threshold

        Returns:
            Zero or more detections, each with bounding box, score and,
            when extraction succeeded, a descriptor

        Raises:
            ModelNotReadyError: If a required component is not loaded
        """
        pass
