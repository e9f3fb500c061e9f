"""
Image processing utility functions.
"""
import hashlib
import math
from typing import Optional, Union

import cv2
import numpy as np

from faceverify.core.exceptions import InvalidFrameError
from faceverify.core.logging import get_logger

logger = get_logger(__name__)


def bytes_to_numpy_array(image_bytes: bytes, flags: int = cv2.IMREAD_COLOR) -> np.ndarray:
    """Convert image bytes to a numpy array.

    Args:
        image_bytes: Raw image bytes
        flags: OpenCV imread flags (default: COLOR)

    Returns:
        numpy.ndarray: Image as a numpy array

    Raises:
        InvalidFrameError: If the image cannot be decoded
    """
    if not image_bytes:
        raise InvalidFrameError("Frame is empty")

    np_array = np.frombuffer(image_bytes, np.uint8)
    img = cv2.imdecode(np_array, flags)

    if img is None:
        raise InvalidFrameError("Failed to decode frame bytes")

    return img


def load_frame(frame: Union[bytes, bytearray, np.ndarray], max_pixels: Optional[int] = None) -> np.ndarray:
    """Decode and validate a frame for face detection.

    Grayscale and BGRA arrays are converted to BGR. Frames larger than
    ``max_pixels`` are downscaled, keeping the aspect ratio.

    Args:
        frame: Encoded image bytes or a decoded image array
        max_pixels: Optional pixel budget

    Returns:
        BGR uint8 image (H, W, 3)

    Raises:
        InvalidFrameError: If the frame cannot be decoded or has no area
    """
    if frame is None:
        raise InvalidFrameError("Frame is missing")

    if isinstance(frame, (bytes, bytearray, memoryview)):
        img = bytes_to_numpy_array(bytes(frame))
    elif isinstance(frame, np.ndarray):
        img = frame
    else:
        raise InvalidFrameError(f"Unsupported frame type: {type(frame).__name__}")

    if img.ndim not in (2, 3):
        raise InvalidFrameError(f"Frame must be 2-D or 3-D, got {img.ndim} dimensions")

    height, width = img.shape[:2]
    if height == 0 or width == 0:
        raise InvalidFrameError(f"Frame has zero dimensions ({width}x{height})")

    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    elif img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    elif img.shape[2] != 3:
        raise InvalidFrameError(f"Frame has unsupported channel count: {img.shape[2]}")

    pixels = width * height
    if max_pixels is not None and pixels > max_pixels:
        scale = math.sqrt(max_pixels / pixels)
        new_width = max(1, int(width * scale))
        new_height = max(1, int(height * scale))

        logger.info(
            "Resizing large frame",
            original_size=(width, height),
            new_size=(new_width, new_height)
        )

        img = cv2.resize(img, (new_width, new_height), interpolation=cv2.INTER_AREA)

    return img


def frame_fingerprint(frame: Union[bytes, bytearray, np.ndarray]) -> str:
    """Get a short content hash identifying a frame.

    Works on the raw frame, so it does not need a decode.
    """
    digest = hashlib.blake2b(digest_size=16)
    if isinstance(frame, np.ndarray):
        digest.update(str(frame.shape).encode())
        digest.update(str(frame.dtype).encode())
        digest.update(np.ascontiguousarray(frame).tobytes())
    elif isinstance(frame, (bytes, bytearray, memoryview)):
        digest.update(bytes(frame))
    else:
        raise InvalidFrameError(f"Unsupported frame type: {type(frame).__name__}")
    return digest.hexdigest()


def encode_jpeg(image: np.ndarray, quality: int = 80) -> bytes:
    """Encode a BGR image as JPEG bytes.

    Raises:
        InvalidFrameError: If OpenCV cannot encode the image
    """
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise InvalidFrameError("Failed to encode frame as JPEG")
    return buffer.tobytes()
