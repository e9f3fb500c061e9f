"""Tests for the S3 snapshot store with the aioboto3 session mocked."""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from faceverify.core.exceptions import StorageError
from faceverify.infrastructure.storage.s3_snapshots import S3SnapshotStore


def make_session(client):
    """Build a session whose client() context yields the given client."""
    session = MagicMock()

    @asynccontextmanager
    async def client_context(service_name, **kwargs):
        session.client_kwargs = kwargs
        yield client

    session.client.side_effect = client_context
    return session


@pytest.fixture
def s3_client():
    client = MagicMock()
    client.upload_fileobj = AsyncMock()
    return client


class TestS3SnapshotStore:
    async def test_uploads_jpeg_and_returns_url(self, s3_client):
        session = make_session(s3_client)
        store = S3SnapshotStore(bucket_name="faces-bucket", region_name="eu-west-1", prefix="enrollments",
                                session=session)

        url = await store.save("alice", b"\xff\xd8jpeg")

        args, kwargs = s3_client.upload_fileobj.call_args
        fileobj, bucket, key = args
        assert fileobj.read() == b"\xff\xd8jpeg"
        assert bucket == "faces-bucket"
        assert key.startswith("enrollments/face-alice-") and key.endswith(".jpg")
        assert kwargs["ExtraArgs"] == {"ContentType": "image/jpeg"}
        assert url == f"https://faces-bucket.s3.eu-west-1.amazonaws.com/{key}"

    async def test_explicit_credentials_are_passed_to_client(self, s3_client):
        session = make_session(s3_client)
        store = S3SnapshotStore(bucket_name="b", region_name="us-east-1", access_key_id="AKIA",
                                secret_access_key="secret", session=session)

        await store.save("alice", b"x")

        assert session.client_kwargs["aws_access_key_id"] == "AKIA"
        assert session.client_kwargs["aws_secret_access_key"] == "secret"

    async def test_client_error_becomes_storage_error(self, s3_client):
        s3_client.upload_fileobj.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        store = S3SnapshotStore(bucket_name="b", session=make_session(s3_client))

        with pytest.raises(StorageError):
            await store.save("alice", b"x")

    async def test_missing_credentials_become_storage_error(self, s3_client):
        s3_client.upload_fileobj.side_effect = NoCredentialsError()
        store = S3SnapshotStore(bucket_name="b", session=make_session(s3_client))

        with pytest.raises(StorageError):
            await store.save("alice", b"x")

    def test_bucket_is_required(self):
        with pytest.raises(ValueError):
            S3SnapshotStore(bucket_name="", session=MagicMock())

    def test_key_without_prefix(self):
        store = S3SnapshotStore(bucket_name="b", prefix="", session=MagicMock())
        assert store.build_key("alice").startswith("face-alice-")
