"""
S3 snapshot store for enrollment images using aioboto3.
"""
import io
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import aioboto3
from botocore.exceptions import ClientError, NoCredentialsError

from faceverify.core.config import settings
from faceverify.core.exceptions import StorageError
from faceverify.core.logging import get_logger
from faceverify.domain.interfaces.storage.snapshot_store import SnapshotStore

logger = get_logger(__name__)


class S3SnapshotStore(SnapshotStore):
    """Snapshot store uploading enrollment JPEGs to an S3 bucket."""

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        prefix: Optional[str] = None,
        session: Optional[Any] = None,
    ):
        """Store configuration but do not open a client yet."""
        self.bucket_name = bucket_name or settings.SNAPSHOT_BUCKET
        self.region_name = region_name or settings.AWS_REGION
        self.access_key_id = access_key_id or settings.AWS_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or settings.AWS_SECRET_ACCESS_KEY
        self.prefix = (prefix if prefix is not None else settings.SNAPSHOT_PREFIX).strip("/")
        if not self.bucket_name:
            raise ValueError("An S3 bucket name is required for snapshot storage")
        self._session = session or aioboto3.Session()

    @asynccontextmanager
    async def _get_client(self) -> AsyncGenerator[Any, None]:
        """Open an S3 client for the duration of one operation."""
        client_args = {"region_name": self.region_name or "us-east-1"}
        if self.access_key_id and self.secret_access_key:
            logger.debug("Using explicit AWS credentials from config for aioboto3")
            client_args["aws_access_key_id"] = self.access_key_id
            client_args["aws_secret_access_key"] = self.secret_access_key
        try:
            async with self._session.client("s3", **client_args) as s3:
                yield s3
        except NoCredentialsError as e:
            logger.error("AWS credentials not found", error=str(e))
            raise StorageError("AWS credentials not found or configured correctly.") from e

    def build_key(self, identity_id: str) -> str:
        file_name = f"face-{identity_id}-{int(time.time() * 1000)}.jpg"
        return f"{self.prefix}/{file_name}" if self.prefix else file_name

    async def save(self, identity_id: str, image_bytes: bytes) -> str:
        """
        Upload a JPEG snapshot.

        Args:
            identity_id: Identity the snapshot belongs to
            image_bytes: JPEG encoded image

        Returns:
            The S3 object URL
        """
        key = self.build_key(identity_id)
        try:
            async with self._get_client() as s3:
                await s3.upload_fileobj(
                    io.BytesIO(image_bytes),
                    self.bucket_name,
                    key,
                    ExtraArgs={"ContentType": "image/jpeg"},
                )
        except StorageError:
            raise
        except ClientError as e:
            logger.error("Failed to upload snapshot to S3 due to client error",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Failed to upload snapshot '{key}' to S3: {e}") from e
        except Exception as e:
            logger.error("Unexpected error uploading snapshot to S3",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Unexpected error uploading snapshot '{key}': {e}") from e

        url = f"https://{self.bucket_name}.s3.{self.region_name}.amazonaws.com/{key}"
        logger.info("Uploaded face snapshot", key=key, bucket=self.bucket_name, identity_id=identity_id)
        return url
