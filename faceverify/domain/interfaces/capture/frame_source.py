"""Capture surface interface."""
from abc import ABC, abstractmethod
from typing import Union

import numpy as np

Frame = Union[bytes, np.ndarray]


class FrameSourceClosedError(Exception):
    """Raised by a frame source that has no more frames to give."""
    pass


class FrameSource(ABC):
    """Interface for a capture device that supplies frames on demand."""

    @abstractmethod
    async def get_frame(self) -> Frame:
        """
        Grab the current frame.

        Returns:
            Encoded image bytes or a decoded BGR array

        Raises:
            FrameSourceClosedError: If the source was released or ended
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Release the capture device. Must be idempotent."""
        pass
