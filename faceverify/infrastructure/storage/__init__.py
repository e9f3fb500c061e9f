"""Object storage for enrollment snapshots."""
from .s3_snapshots import S3SnapshotStore

__all__ = ["S3SnapshotStore"]
