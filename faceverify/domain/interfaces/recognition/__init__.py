from .face_capability import FaceCapability

__all__ = ["FaceCapability"]
