"""Lazy, coalesced, retried loading of the face capability models.

Concurrent callers of ``ensure_ready()`` share one in-flight initialization
task. Each attempt loads only the components not yet marked loaded, so a
retry never reloads pieces that already succeeded. The whole initialization,
retries and backoff included, runs under one deadline.

Example:
    ```python
    lifecycle = ModelLifecycleManager(InsightFaceCapability())
    await lifecycle.ensure_ready()
    ```
"""
import asyncio
import time
from typing import Optional, Set

from faceverify.core.config import settings
from faceverify.core.exceptions import (
    ComponentLoadError,
    ModelInitExhaustedError,
    ModelInitTimeoutError,
    RetryExhaustedError,
)
from faceverify.core.logging import get_logger
from faceverify.core.retry import RetryPolicy, retry_async
from faceverify.domain.interfaces.recognition.face_capability import FaceCapability
from faceverify.domain.value_objects.verification import ModelState

logger = get_logger(__name__)


class ModelLifecycleManager:
    """Owns the readiness state of one capability instance."""

    def __init__(
        self,
        capability: FaceCapability,
        max_attempts: int = settings.MODEL_INIT_MAX_ATTEMPTS,
        initial_backoff: float = settings.MODEL_INIT_INITIAL_BACKOFF,
        backoff_multiplier: float = settings.MODEL_INIT_BACKOFF_MULTIPLIER,
        timeout: float = settings.MODEL_INIT_TIMEOUT,
    ) -> None:
        """Initialize the lifecycle manager.

        Args:
            capability: Capability whose components are loaded
            max_attempts: Initialization attempts before giving up
            initial_backoff: Seconds to wait after the first failed attempt
            backoff_multiplier: Growth factor of the backoff
            timeout: Deadline in seconds for the whole initialization
        """
        self._capability = capability
        self._policy = RetryPolicy(
            max_attempts=max_attempts,
            initial_delay=initial_backoff,
            multiplier=backoff_multiplier,
        )
        self._timeout = timeout
        self._loaded: Set[str] = set()
        self._initialized = False
        self._last_attempt_at: Optional[float] = None
        self._init_task: Optional["asyncio.Task[None]"] = None
        self._background: Set["asyncio.Task[None]"] = set()

    @property
    def capability(self) -> FaceCapability:
        return self._capability

    @property
    def is_ready(self) -> bool:
        return self._initialized

    @property
    def is_loading(self) -> bool:
        return self._init_task is not None and not self._init_task.done()

    @property
    def state(self) -> ModelState:
        return ModelState(
            loaded_components=frozenset(self._loaded),
            is_initialized=self._initialized,
            last_attempt_at=self._last_attempt_at,
        )

    async def ensure_ready(self) -> None:
        """Make sure every capability component is loaded.

        Returns immediately when already ready. Otherwise joins the
        initialization in flight or starts a new one.

        Raises:
            ModelInitTimeoutError: If initialization missed its deadline
            ModelInitExhaustedError: If every attempt failed
        """
        if self._initialized:
            return

        if self._init_task is None or self._init_task.done():
            self._init_task = asyncio.ensure_future(self._initialize())

        # A cancelled waiter must not cancel the shared initialization
        await asyncio.shield(self._init_task)

    def invalidate(self) -> None:
        """Mark the model not-ready so the next ``ensure_ready()`` re-checks it.

        Components already loaded stay marked and are not reloaded unless the
        capability reports them unloaded.
        """
        if self._initialized:
            logger.info("Model marked for reinitialization")
        self._initialized = False

    async def reinitialize(self) -> None:
        """Invalidate and load again."""
        self.invalidate()
        await self.ensure_ready()

    def preload(self) -> "asyncio.Task[None]":
        """Start initialization in the background, logging any failure."""
        task = asyncio.ensure_future(self._preload())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _preload(self) -> None:
        try:
            await self.ensure_ready()
        except Exception as e:
            logger.warning("Background model preloading failed", error=str(e))

    async def _initialize(self) -> None:
        start = time.perf_counter()
        try:
            await asyncio.wait_for(
                retry_async(
                    self._load_components,
                    self._policy,
                    description="model initialization",
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Model initialization timed out", timeout=self._timeout)
            raise ModelInitTimeoutError(
                f"Model initialization timed out after {self._timeout}s",
                {"loaded_components": sorted(self._loaded)},
            ) from e
        except RetryExhaustedError as e:
            raise ModelInitExhaustedError(
                f"Failed to initialize face models after {e.attempts} attempts: {e.last_error}",
                {"attempts": e.attempts, "loaded_components": sorted(self._loaded)},
            ) from e

        self._initialized = True
        logger.info(
            "Face models loaded",
            components=sorted(self._loaded),
            load_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    async def _load_components(self) -> None:
        self._last_attempt_at = time.monotonic()
        for name in self._capability.component_names:
            if self._capability.is_loaded(name):
                self._loaded.add(name)
                continue

            self._loaded.discard(name)
            try:
                await self._capability.load(name)
            except Exception as e:
                logger.error("Failed to load model component", component=name, error=str(e))
                raise ComponentLoadError(name, f"Failed to load {name}: {e}") from e

            if not self._capability.is_loaded(name):
                raise ComponentLoadError(name, f"Component {name} did not report loaded")
            self._loaded.add(name)
            logger.info("Model component loaded", component=name)
