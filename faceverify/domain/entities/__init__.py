"""Domain entities package."""
from .face import BoundingBox, Detection, FaceDescriptor

__all__ = ["BoundingBox", "Detection", "FaceDescriptor"]
