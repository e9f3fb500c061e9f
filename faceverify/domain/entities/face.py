"""Core face domain entities."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BoundingBox(BaseModel):
    """Face bounding box coordinates, relative to the frame (0-1)."""
    left: float = Field(..., description="Left coordinate of the bounding box")
    top: float = Field(..., description="Top coordinate of the bounding box")
    width: float = Field(..., description="Width of the bounding box")
    height: float = Field(..., description="Height of the bounding box")


def _as_descriptor_array(v: Union[np.ndarray, list, tuple]) -> np.ndarray:
    arr = np.asarray(v, dtype=np.float32)
    if arr.ndim != 1 or arr.size == 0:
        raise ValueError("descriptor must be a non-empty 1-D vector")
    if not np.all(np.isfinite(arr)):
        raise ValueError("descriptor contains non-finite values")
    return arr


class Detection(BaseModel):
    """One face located in a single frame.

    Lives only for the duration of one pipeline call and is never persisted.
    """
    bounding_box: BoundingBox = Field(..., description="Face location in the frame")
    score: float = Field(..., description="Detection quality score (0-1) from the capability")
    landmarks: Optional[np.ndarray] = Field(None, description="Facial landmark points in pixels")
    descriptor: Optional[np.ndarray] = Field(None, description="Face descriptor, if extraction succeeded")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("descriptor", mode="before")
    @classmethod
    def validate_descriptor(cls, v: Optional[Union[np.ndarray, list]]) -> Optional[np.ndarray]:
        """Validate and convert descriptor to a float32 numpy array."""
        if v is None:
            return None
        return _as_descriptor_array(v)


class FaceDescriptor(BaseModel):
    """Enrolled face descriptor owned by exactly one identity.

    Never mutated: re-enrollment creates a new descriptor that supersedes
    the old one.
    """
    identity_id: str = Field(..., description="Identity that owns this descriptor")
    vector: np.ndarray = Field(..., description="Fixed-length face descriptor")
    descriptor_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    image_url: Optional[str] = Field(None, description="Stored snapshot of the enrolled face")

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @field_validator("vector", mode="before")
    @classmethod
    def validate_vector(cls, v: Union[np.ndarray, list]) -> np.ndarray:
        """Copy the vector into a read-only float32 array."""
        arr = np.array(_as_descriptor_array(v), copy=True)
        arr.setflags(write=False)
        return arr

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])

    def to_face_data(self) -> Dict[str, Any]:
        """Serialize into the JSON payload kept on the identity record."""
        return {
            "id": self.descriptor_id,
            "descriptor": [float(x) for x in self.vector],
            "timestamp": self.created_at.isoformat(),
            "imageUrl": self.image_url,
        }

    @classmethod
    def from_face_data(cls, identity_id: str, data: Dict[str, Any]) -> "FaceDescriptor":
        """Rebuild a descriptor from its stored JSON payload.

        Args:
            identity_id: Identity that owns the payload
            data: Payload produced by ``to_face_data``

        Returns:
            FaceDescriptor instance
        """
        kwargs: Dict[str, Any] = {
            "identity_id": identity_id,
            "vector": data["descriptor"],
            "image_url": data.get("imageUrl"),
        }
        if data.get("id"):
            kwargs["descriptor_id"] = data["id"]
        if data.get("timestamp"):
            kwargs["created_at"] = datetime.fromisoformat(data["timestamp"])
        return cls(**kwargs)
