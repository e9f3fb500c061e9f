"""Periodic, cancellable verification of a live capture source.

The loop ticks every ``interval`` seconds. A tick grabs a frame and runs one
verification; while that call is outstanding, further ticks are skipped.
Results reach the consumer through an optional callback and through async
iteration over the handle.

Example:
    ```python
    loop = engine.start_real_time("user-123", OpenCVFrameSource(0))
    async for result in loop:
        if not result.is_match:
            loop.stop()
    ```
"""
import asyncio
from enum import Enum
from types import TracebackType
from typing import Awaitable, Callable, Optional, Type

from faceverify.core.config import settings
from faceverify.core.logging import get_logger
from faceverify.domain.interfaces.capture.frame_source import (
    Frame,
    FrameSource,
    FrameSourceClosedError,
)
from faceverify.domain.value_objects.verification import VerificationOutcome, VerificationResult

logger = get_logger(__name__)

VerifyCallable = Callable[[Frame, str], Awaitable[VerificationResult]]
ResultCallback = Callable[[VerificationResult], None]

_CLOSED = object()


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


class RealTimeVerificationLoop:
    """Handle of one running real-time verification.

    At most one verification is outstanding at any time. ``stop()`` is
    synchronous, idempotent and may be called from inside the result
    callback; once it returns, no further result is delivered.
    """

    def __init__(
        self,
        verify: VerifyCallable,
        frame_source: FrameSource,
        identity_id: str,
        interval: float = settings.REALTIME_INTERVAL,
        on_result: Optional[ResultCallback] = None,
        reinitialize: Optional[Callable[[], Awaitable[None]]] = None,
        reinit_delay: float = settings.REALTIME_REINIT_DELAY,
        max_consecutive_errors: int = settings.REALTIME_MAX_CONSECUTIVE_ERRORS,
        buffer_size: int = settings.REALTIME_RESULT_BUFFER,
    ) -> None:
        """Initialize the loop without starting it.

        Args:
            verify: Single-shot verification coroutine
            frame_source: Capture source, released when the loop ends
            identity_id: Identity every frame is verified against
            interval: Seconds between ticks
            on_result: Optional callback receiving every result
            reinitialize: Coroutine restoring the model after repeated failures
            reinit_delay: Seconds to wait before reinitializing
            max_consecutive_errors: Failed ticks in a row that trigger recovery
            buffer_size: Results kept for async iteration before the oldest is dropped
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._verify = verify
        self._frame_source = frame_source
        self._identity_id = identity_id
        self._interval = interval
        self._on_result = on_result
        self._reinitialize = reinitialize
        self._reinit_delay = reinit_delay
        self._max_consecutive_errors = max(1, max_consecutive_errors)
        self._buffer_size = max(1, buffer_size)

        self._state = LoopState.IDLE
        self._stopped = False
        self._timer_task: Optional["asyncio.Task[None]"] = None
        self._tick_task: Optional["asyncio.Task[None]"] = None
        self._results: "asyncio.Queue[object]" = asyncio.Queue()
        self._consecutive_errors = 0
        self.ticks_started = 0
        self.ticks_skipped = 0
        self.results_delivered = 0
        self.recoveries = 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def identity_id(self) -> str:
        return self._identity_id

    @property
    def is_running(self) -> bool:
        return self._state is LoopState.RUNNING

    def start(self) -> "RealTimeVerificationLoop":
        """Start ticking. Must be called from a running event loop."""
        if self._state is not LoopState.IDLE or self._stopped or self._timer_task is not None:
            raise RuntimeError("Real-time verification loop can only be started once")
        self._state = LoopState.RUNNING
        self._timer_task = asyncio.ensure_future(self._run())
        logger.info("Real-time verification started", identity_id=self._identity_id, interval=self._interval)
        return self

    def stop(self) -> None:
        """Cancel the loop and release the capture source."""
        if self._stopped:
            return
        self._shutdown(LoopState.CANCELLED)
        logger.info(
            "Real-time verification stopped",
            identity_id=self._identity_id,
            results_delivered=self.results_delivered,
            ticks_skipped=self.ticks_skipped,
        )

    async def wait_closed(self) -> None:
        """Wait until the background tasks have finished."""
        for task in (self._timer_task, self._tick_task):
            if task is None:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _shutdown(self, state: LoopState) -> None:
        self._stopped = True
        self._state = state

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in (self._timer_task, self._tick_task):
            if task is not None and task is not current and not task.done():
                task.cancel()

        try:
            self._frame_source.release()
        except Exception as e:
            logger.error("Failed to release frame source", identity_id=self._identity_id, error=str(e))

        # Buffered results are not delivered once cancelled
        if state is LoopState.CANCELLED:
            while not self._results.empty():
                self._results.get_nowait()
        self._results.put_nowait(_CLOSED)

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self._interval)
            if self._stopped:
                break
            if self._tick_task is not None and not self._tick_task.done():
                self.ticks_skipped += 1
                logger.debug("Previous verification still running, skipping tick", identity_id=self._identity_id)
                continue
            self.ticks_started += 1
            self._tick_task = asyncio.ensure_future(self._tick())

    async def _tick(self) -> None:
        try:
            frame = await self._frame_source.get_frame()
            result = await self._verify(frame, self._identity_id)
        except FrameSourceClosedError:
            logger.info("Frame source closed, ending real-time verification", identity_id=self._identity_id)
            if not self._stopped:
                self._shutdown(LoopState.IDLE)
            return
        except Exception as e:
            self._consecutive_errors += 1
            logger.warning(
                "Real-time verification tick failed",
                identity_id=self._identity_id,
                consecutive_errors=self._consecutive_errors,
                max_consecutive_errors=self._max_consecutive_errors,
                error=str(e),
            )
            if self._consecutive_errors >= self._max_consecutive_errors:
                await self._recover("too many consecutive errors")
            return

        self._consecutive_errors = 0
        self._deliver(result)

        if result.outcome is VerificationOutcome.NOT_INITIALIZED:
            await self._recover("model not initialized")

    def _deliver(self, result: VerificationResult) -> None:
        if self._stopped:
            return
        self.results_delivered += 1

        if self._on_result is not None:
            try:
                self._on_result(result)
            except Exception as e:
                logger.error("Real-time result callback failed", identity_id=self._identity_id, error=str(e))

        # The callback may have stopped the loop
        if self._stopped:
            return
        if self._results.qsize() >= self._buffer_size:
            self._results.get_nowait()
        self._results.put_nowait(result)

    async def _recover(self, reason: str) -> None:
        """Pause, reinitialize the model and resume. Ticks stay skipped meanwhile."""
        self.recoveries += 1
        logger.warning(
            "Real-time verification degraded, reinitializing",
            identity_id=self._identity_id,
            reason=reason,
            delay=self._reinit_delay,
        )
        await asyncio.sleep(self._reinit_delay)
        if self._stopped or self._reinitialize is None:
            return
        try:
            await self._reinitialize()
        except Exception as e:
            logger.error("Reinitialization failed", identity_id=self._identity_id, error=str(e))
            return
        self._consecutive_errors = 0
        logger.info("Real-time verification resumed", identity_id=self._identity_id)

    def __aiter__(self) -> "RealTimeVerificationLoop":
        return self

    async def __anext__(self) -> VerificationResult:
        item = await self._results.get()
        if item is _CLOSED:
            # Leave the marker for any other consumer
            self._results.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "RealTimeVerificationLoop":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.stop()
        await self.wait_closed()
