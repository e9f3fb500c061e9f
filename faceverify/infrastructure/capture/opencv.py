"""OpenCV capture device backed frame source."""
import asyncio
import threading
from typing import Optional, Union

import cv2
import numpy as np

from faceverify.core.logging import get_logger
from faceverify.domain.interfaces.capture.frame_source import FrameSource, FrameSourceClosedError

logger = get_logger(__name__)


class OpenCVFrameSource(FrameSource):
    """
    Frame source reading from a camera index, video file or stream URL.

    The device is opened lazily on the first ``get_frame`` call. Reads run in
    a worker thread so the event loop is not blocked by the capture backend.
    """

    def __init__(self, source: Union[int, str] = 0, api_preference: Optional[int] = None):
        self.source = source
        self.api_preference = api_preference
        self._capture: Optional[cv2.VideoCapture] = None
        self._released = False
        self._lock = threading.Lock()

    @property
    def is_released(self) -> bool:
        return self._released

    def _open(self) -> cv2.VideoCapture:
        if self.api_preference is None:
            capture = cv2.VideoCapture(self.source)
        else:
            capture = cv2.VideoCapture(self.source, self.api_preference)
        if not capture.isOpened():
            capture.release()
            raise FrameSourceClosedError(f"Failed to open capture source {self.source!r}")
        logger.info("Opened capture source", source=str(self.source))
        return capture

    def _read(self) -> np.ndarray:
        with self._lock:
            if self._released:
                raise FrameSourceClosedError("Capture source was released")
            if self._capture is None:
                self._capture = self._open()
            ok, frame = self._capture.read()
        if not ok or frame is None:
            raise FrameSourceClosedError(f"Capture source {self.source!r} ended")
        return frame

    async def get_frame(self) -> np.ndarray:
        return await asyncio.to_thread(self._read)

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            if self._capture is not None:
                self._capture.release()
                self._capture = None
        logger.info("Released capture source", source=str(self.source))
