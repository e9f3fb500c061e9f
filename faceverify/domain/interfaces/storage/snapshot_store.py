"""Snapshot store interface for enrollment images."""
from abc import ABC, abstractmethod


class SnapshotStore(ABC):
    """Interface for persisting the image captured at enrollment."""

    @abstractmethod
    async def save(self, identity_id: str, image_bytes: bytes) -> str:
        """
        Persist a JPEG snapshot.

        Args:
            identity_id: Identity the snapshot belongs to
            image_bytes: JPEG encoded image

        Returns:
            URL of the stored image

        Raises:
            StorageError: If the upload fails
        """
        pass
