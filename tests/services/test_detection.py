"""Tests for the throttled, retried detection runner."""
import asyncio
import time

import pytest

from conftest import ALICE, FakeCapability, make_frame
from faceverify.core.exceptions import (
    CapabilityFaultError,
    DetectionTimeoutError,
    InvalidFrameError,
    ModelInitExhaustedError,
    ModelNotReadyError,
)
from faceverify.domain.value_objects.verification import DetectionOptions
from faceverify.services.detection import DetectionRunner, is_model_fault
from faceverify.services.model_lifecycle import ModelLifecycleManager


def make_runner(capability, **kwargs) -> DetectionRunner:
    lifecycle = ModelLifecycleManager(capability, max_attempts=2, initial_backoff=0.0, timeout=1.0)
    kwargs.setdefault("cooldown_ms", 0)
    kwargs.setdefault("timeout", 0.5)
    kwargs.setdefault("retry_delay", 0.0)
    return DetectionRunner(capability, lifecycle, **kwargs)


@pytest.mark.parametrize("error,expected", [
    (ModelNotReadyError("components missing"), True),
    (RuntimeError("Model not initialized"), True),
    (RuntimeError("onnx model session broken"), True),
    (TypeError("'NoneType' object is undefined"), True),
    (asyncio.TimeoutError(), False),
    (RuntimeError("out of memory"), False),
])
def test_is_model_fault(error, expected):
    assert is_model_fault(error) is expected


class TestDetectionRunner:
    async def test_loads_models_before_first_detection(self, capability):
        runner = make_runner(capability)
        detections = await runner.detect(make_frame(ALICE), DetectionOptions())

        assert len(detections) == 1
        assert capability.load_calls == ["detection", "recognition"]

    async def test_passes_options_to_capability(self, capability):
        runner = make_runner(capability)
        options = DetectionOptions(input_size=320, score_threshold=0.5)
        await runner.detect(make_frame(ALICE), options)
        assert capability.detect_options == [options]

    async def test_cooldown_spaces_invocations(self, capability):
        runner = make_runner(capability, cooldown_ms=50)
        await runner.detect(make_frame(ALICE), DetectionOptions())
        await runner.detect(make_frame(ALICE), DetectionOptions())

        first, second = capability.detect_times
        assert second - first >= 0.045

    async def test_cooldown_applies_across_concurrent_callers(self, capability):
        runner = make_runner(capability, cooldown_ms=30)
        await asyncio.gather(*(runner.detect(make_frame(ALICE), DetectionOptions()) for _ in range(3)))

        times = sorted(capability.detect_times)
        assert all(b - a >= 0.025 for a, b in zip(times, times[1:]))

    async def test_wait_for_cooldown_reports_sleep(self, capability):
        runner = make_runner(capability, cooldown_ms=40)
        assert await runner.wait_for_cooldown() == 0.0
        assert await runner.wait_for_cooldown() > 0.0

    async def test_retries_once_after_transient_failure(self, capability):
        capability.detect_errors = [RuntimeError("transient")]
        runner = make_runner(capability)

        detections = await runner.detect(make_frame(ALICE), DetectionOptions())

        assert len(detections) == 1
        assert capability.detect_calls == 2

    async def test_model_fault_triggers_reinitialization(self, capability):
        runner = make_runner(capability)
        await runner.detect(make_frame(ALICE), DetectionOptions())
        capability.unload()

        detections = await runner.detect(make_frame(ALICE), DetectionOptions())

        assert len(detections) == 1
        assert capability.load_calls == ["detection", "recognition"] * 2

    async def test_persistent_failure_is_capability_fault(self, capability):
        capability.detect_errors = [RuntimeError("boom"), RuntimeError("boom"), RuntimeError("boom")]
        runner = make_runner(capability)

        with pytest.raises(CapabilityFaultError):
            await runner.detect(make_frame(ALICE), DetectionOptions())
        assert capability.detect_calls == 2

    async def test_slow_capability_times_out(self):
        capability = FakeCapability(detect_delay=0.2)
        runner = make_runner(capability, timeout=0.05)

        start = time.monotonic()
        with pytest.raises(DetectionTimeoutError):
            await runner.detect(make_frame(ALICE), DetectionOptions())
        assert time.monotonic() - start < 1.0
        assert capability.detect_calls == 2

    async def test_invalid_frame_is_not_retried(self, capability):
        runner = make_runner(capability)
        with pytest.raises(InvalidFrameError):
            await runner.detect(b"garbage", DetectionOptions())
        assert capability.detect_calls == 0

    async def test_unloadable_model_raises_init_error(self, capability):
        capability.load_failures["detection"] = 10
        runner = make_runner(capability)
        with pytest.raises(ModelInitExhaustedError):
            await runner.detect(make_frame(ALICE), DetectionOptions())
        assert capability.detect_calls == 0

    async def test_non_list_result_is_a_fault(self, capability):
        async def broken_detect(image, options):
            return None

        capability.detect = broken_detect
        runner = make_runner(capability)
        with pytest.raises(CapabilityFaultError):
            await runner.detect(make_frame(ALICE), DetectionOptions())
