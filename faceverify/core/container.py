"""Service container for dependency injection."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from faceverify.core.config import Settings, settings
from faceverify.core.logging import get_logger, setup_logging
from faceverify.domain.interfaces.recognition.face_capability import FaceCapability
from faceverify.domain.interfaces.storage.audit_sink import AuditSink
from faceverify.domain.interfaces.storage.identity_store import IdentityStore
from faceverify.domain.interfaces.storage.snapshot_store import SnapshotStore
from faceverify.infrastructure.database.session import create_engine, create_session_factory, init_models
from faceverify.infrastructure.database.stores import SqlAuditSink, SqlIdentityStore
from faceverify.infrastructure.storage.s3_snapshots import S3SnapshotStore
from faceverify.services.engine import FaceVerificationEngine
from faceverify.services.recognition.insight_face import InsightFaceCapability

logger = get_logger(__name__)


class ServiceContainer:
    """Container for application services.

    This container manages the lifecycle and dependencies of the production
    collaborators and the engine built on top of them.

    The matching thresholds in the settings default to values tuned for
    128-d descriptors. With the InsightFace capability wired here they accept
    only near-identical embeddings; set MATCH_MAX_DISTANCE and
    MATCH_CONFIDENCE_THRESHOLD for ArcFace before deploying.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()

        result = await container.engine.verify(frame, "user-123")
        ```
    """

    def __init__(self, config: Settings = settings) -> None:
        """Initialize empty container."""
        self.config = config

        # Infrastructure
        self.db_engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self.identity_store: Optional[IdentityStore] = None
        self.audit_sink: Optional[AuditSink] = None
        self.snapshot_store: Optional[SnapshotStore] = None

        # Recognition
        self.capability: Optional[FaceCapability] = None
        self.engine: Optional[FaceVerificationEngine] = None

    async def initialize(self, preload_models: bool = True) -> None:
        """Initialize all services in the correct order."""
        setup_logging(self.config)

        self.db_engine = create_engine(config=self.config)
        await init_models(self.db_engine)
        self.session_factory = create_session_factory(self.db_engine)
        self.identity_store = SqlIdentityStore(self.session_factory)
        self.audit_sink = SqlAuditSink(self.session_factory)

        if self.config.SNAPSHOT_BUCKET:
            self.snapshot_store = S3SnapshotStore(
                bucket_name=self.config.SNAPSHOT_BUCKET,
                region_name=self.config.AWS_REGION,
                access_key_id=self.config.AWS_ACCESS_KEY_ID,
                secret_access_key=self.config.AWS_SECRET_ACCESS_KEY,
                prefix=self.config.SNAPSHOT_PREFIX,
            )
        else:
            logger.info("SNAPSHOT_BUCKET not set, enrollment snapshots are not stored")

        self.capability = InsightFaceCapability(
            model_name=self.config.MODEL_NAME,
            root=self.config.MODEL_CACHE_DIR,
            providers=self.config.model_providers,
            components=self.config.model_components,
        )
        self.engine = FaceVerificationEngine(
            self.capability,
            self.identity_store,
            audit_sink=self.audit_sink,
            snapshot_store=self.snapshot_store,
            config=self.config,
        )
        if preload_models:
            self.engine.preload()

        logger.info(
            "Service container initialized",
            environment=self.config.ENVIRONMENT,
            model=self.config.MODEL_NAME,
        )

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        if self.engine:
            await self.engine.close()
            self.engine = None
        self.capability = None

        self.snapshot_store = None
        self.audit_sink = None
        self.identity_store = None
        self.session_factory = None

        if self.db_engine:
            await self.db_engine.dispose()
            self.db_engine = None


# Global container instance
container = ServiceContainer()
