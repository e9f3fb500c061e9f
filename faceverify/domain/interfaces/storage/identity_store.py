"""Identity store interface for enrolled face descriptors."""
from abc import ABC, abstractmethod
from typing import List

from ...entities.face import FaceDescriptor


class IdentityStore(ABC):
    """Interface for reading and writing the descriptors enrolled per identity."""

    @abstractmethod
    async def get_descriptors(self, identity_id: str) -> List[FaceDescriptor]:
        """
        Get the descriptors enrolled for an identity.

        Args:
            identity_id: External identity identifier

        Returns:
            Enrolled descriptors; empty if the identity has none

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def put_descriptor(self, identity_id: str, descriptor: FaceDescriptor) -> None:
        """
        Store a descriptor as the identity's complete descriptor set.

        Any previously enrolled descriptor is replaced, not appended to.

        Args:
            identity_id: External identity identifier
            descriptor: Newly enrolled descriptor

        Raises:
            StorageError: If the store cannot be written
        """
        pass

    @abstractmethod
    async def clear_descriptors(self, identity_id: str) -> None:
        """
        Delete every descriptor of an identity.

        Args:
            identity_id: External identity identifier

        Raises:
            StorageError: If the store cannot be written
        """
        pass
