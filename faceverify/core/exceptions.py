"""Custom exceptions for the face verification engine."""
from typing import Optional


class FaceVerificationError(Exception):
    """Base exception for face verification operations."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face verification error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.details = details or {}


class ModelInitError(FaceVerificationError):
    """Base exception for model initialization failures."""
    pass


class ModelInitTimeoutError(ModelInitError):
    """Raised when model initialization does not finish within its deadline."""
    pass


class ModelInitExhaustedError(ModelInitError):
    """Raised when every model initialization attempt failed."""
    pass


class ComponentLoadError(ModelInitError):
    """Raised when a single capability component fails to load."""

    def __init__(self, component: str, message: str, details: Optional[dict] = None):
        super().__init__(message, details)
        self.component = component


class DetectionError(FaceVerificationError):
    """Base exception for face detection failures."""
    pass


class ModelNotReadyError(DetectionError):
    """Raised when the capability is asked to detect before its models are loaded."""
    pass


class InvalidFrameError(DetectionError):
    """Raised when the provided frame is invalid or cannot be decoded."""
    pass


class DetectionTimeoutError(DetectionError):
    """Raised when face detection does not finish within its deadline."""
    pass


class CapabilityFaultError(DetectionError):
    """Raised when the detection capability fails after its retry budget."""
    pass


class EnrollmentError(FaceVerificationError):
    """Base exception for enrollment failures."""
    pass


class NoFaceDetectedError(EnrollmentError):
    """Raised when no face is detected in the frame."""
    pass


class MultipleFacesError(EnrollmentError):
    """Raised when multiple faces are found in a frame that expects only one face."""
    pass


class LowQualityFaceError(EnrollmentError):
    """Raised when the detected face scores too low to be enrolled."""
    pass


class StorageError(FaceVerificationError):
    """Raised when an identity, audit or snapshot store operation fails."""
    pass


class RetryExhaustedError(FaceVerificationError):
    """Raised when a retried operation failed on every attempt."""

    def __init__(self, description: str, attempts: int, last_error: Optional[BaseException] = None):
        message = f"{description} failed after {attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message, {"attempts": attempts})
        self.attempts = attempts
        self.last_error = last_error
