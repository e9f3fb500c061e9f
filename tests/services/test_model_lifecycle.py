"""Tests for lazy, coalesced model initialization."""
import asyncio

import pytest

from conftest import FakeCapability
from faceverify.core.exceptions import ModelInitExhaustedError, ModelInitTimeoutError
from faceverify.services.model_lifecycle import ModelLifecycleManager


def make_lifecycle(capability, **kwargs) -> ModelLifecycleManager:
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("initial_backoff", 0.01)
    kwargs.setdefault("backoff_multiplier", 2.0)
    kwargs.setdefault("timeout", 2.0)
    return ModelLifecycleManager(capability, **kwargs)


class TestEnsureReady:
    async def test_loads_every_component(self, capability):
        lifecycle = make_lifecycle(capability)
        await lifecycle.ensure_ready()

        assert lifecycle.is_ready
        assert capability.load_calls == ["detection", "recognition"]
        assert lifecycle.state.loaded_components == frozenset({"detection", "recognition"})

    async def test_ready_call_does_not_reload(self, capability):
        lifecycle = make_lifecycle(capability)
        await lifecycle.ensure_ready()
        await lifecycle.ensure_ready()
        assert len(capability.load_calls) == 2

    async def test_concurrent_callers_share_one_initialization(self):
        capability = FakeCapability(load_delay=0.05)
        lifecycle = make_lifecycle(capability)

        await asyncio.gather(*(lifecycle.ensure_ready() for _ in range(5)))

        assert capability.load_calls == ["detection", "recognition"]
        assert lifecycle.is_ready

    async def test_retry_skips_components_already_loaded(self, capability):
        capability.load_failures["recognition"] = 1
        lifecycle = make_lifecycle(capability)

        await lifecycle.ensure_ready()

        assert capability.load_calls == ["detection", "recognition", "recognition"]
        assert lifecycle.is_ready

    async def test_gives_up_after_max_attempts(self, capability):
        capability.load_failures["detection"] = 10
        lifecycle = make_lifecycle(capability)

        with pytest.raises(ModelInitExhaustedError):
            await lifecycle.ensure_ready()

        assert capability.load_calls == ["detection"] * 3
        assert not lifecycle.is_ready

    async def test_next_call_after_failure_starts_over(self, capability):
        capability.load_failures["detection"] = 3
        lifecycle = make_lifecycle(capability)

        with pytest.raises(ModelInitExhaustedError):
            await lifecycle.ensure_ready()
        await lifecycle.ensure_ready()

        assert lifecycle.is_ready
        assert capability.load_calls.count("detection") == 4

    async def test_whole_initialization_has_a_deadline(self):
        capability = FakeCapability(load_delay=0.5)
        lifecycle = make_lifecycle(capability, timeout=0.1)

        with pytest.raises(ModelInitTimeoutError):
            await lifecycle.ensure_ready()
        assert not lifecycle.is_ready

    async def test_cancelled_waiter_does_not_cancel_initialization(self):
        capability = FakeCapability(load_delay=0.05)
        lifecycle = make_lifecycle(capability)

        waiter = asyncio.ensure_future(lifecycle.ensure_ready())
        await asyncio.sleep(0.01)
        waiter.cancel()
        await lifecycle.ensure_ready()

        assert lifecycle.is_ready
        assert capability.load_calls == ["detection", "recognition"]


class TestReinitialize:
    async def test_reloads_components_reported_unloaded(self, capability):
        lifecycle = make_lifecycle(capability)
        await lifecycle.ensure_ready()

        capability.unload()
        await lifecycle.reinitialize()

        assert lifecycle.is_ready
        assert capability.load_calls == ["detection", "recognition"] * 2

    async def test_keeps_components_still_loaded(self, capability):
        lifecycle = make_lifecycle(capability)
        await lifecycle.ensure_ready()

        await lifecycle.reinitialize()

        assert capability.load_calls == ["detection", "recognition"]
        assert lifecycle.is_ready

    async def test_preload_runs_in_background(self, capability):
        lifecycle = make_lifecycle(capability)
        task = lifecycle.preload()
        await task
        assert lifecycle.is_ready

    async def test_preload_failure_is_logged_not_raised(self, capability):
        capability.load_failures["detection"] = 10
        lifecycle = make_lifecycle(capability)
        await lifecycle.preload()
        assert not lifecycle.is_ready
        assert lifecycle.state.last_attempt_at is not None
