"""Shared fixtures and fakes for the face verification tests."""
import asyncio
import time
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from faceverify.core.config import Settings
from faceverify.core.exceptions import ModelNotReadyError
from faceverify.domain.entities.face import BoundingBox, Detection
from faceverify.domain.interfaces.capture.frame_source import Frame, FrameSource, FrameSourceClosedError
from faceverify.domain.interfaces.recognition.face_capability import FaceCapability
from faceverify.domain.value_objects.verification import DetectionOptions
from faceverify.infrastructure.memory.stores import InMemoryAuditSink, InMemoryIdentityStore
from faceverify.services.engine import FaceVerificationEngine

DIMENSION = 8

# Frame markers: a frame is a uniform image and its pixel value selects the faces
BLANK = 0
ALICE = 10
ALICE_AGAIN = 11
STRANGER = 20
CROWD = 30
BLURRY = 40
NO_DESCRIPTOR = 50


def unit_vector(index: int, dimension: int = DIMENSION) -> np.ndarray:
    vector = np.zeros(dimension, dtype=np.float32)
    vector[index] = 1.0
    return vector


ALICE_VECTOR = unit_vector(0)
# Distance 0.1 from ALICE_VECTOR
ALICE_AGAIN_VECTOR = ALICE_VECTOR + np.array([0, 0.1, 0, 0, 0, 0, 0, 0], dtype=np.float32)
STRANGER_VECTOR = unit_vector(1)


def make_frame(marker: int, size: int = 32) -> np.ndarray:
    return np.full((size, size, 3), marker, dtype=np.uint8)


def make_detection(descriptor: Optional[np.ndarray], score: float = 0.95) -> Detection:
    return Detection(
        bounding_box=BoundingBox(left=0.25, top=0.25, width=0.5, height=0.5),
        score=score,
        descriptor=descriptor,
    )


def default_faces() -> Dict[int, List[Detection]]:
    return {
        BLANK: [],
        ALICE: [make_detection(ALICE_VECTOR)],
        ALICE_AGAIN: [make_detection(ALICE_AGAIN_VECTOR)],
        STRANGER: [make_detection(STRANGER_VECTOR)],
        CROWD: [make_detection(ALICE_VECTOR), make_detection(STRANGER_VECTOR)],
        BLURRY: [make_detection(ALICE_VECTOR, score=0.2)],
        NO_DESCRIPTOR: [make_detection(None)],
    }


class FakeCapability(FaceCapability):
    """Scripted capability keyed by the pixel value of the frame."""

    def __init__(
        self,
        components: Sequence[str] = ("detection", "recognition"),
        faces: Optional[Dict[int, List[Detection]]] = None,
        load_delay: float = 0.0,
        detect_delay: float = 0.0,
    ) -> None:
        self._components = tuple(components)
        self.faces = faces if faces is not None else default_faces()
        self.load_delay = load_delay
        self.detect_delay = detect_delay
        self.loaded: set = set()
        self.load_calls: List[str] = []
        # component name -> failures still to raise
        self.load_failures: Dict[str, int] = {}
        self.detect_calls = 0
        self.detect_times: List[float] = []
        self.detect_options: List[DetectionOptions] = []
        # exceptions raised by the next detect calls, in order
        self.detect_errors: List[BaseException] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def component_names(self) -> Sequence[str]:
        return self._components

    async def load(self, component_name: str) -> None:
        self.load_calls.append(component_name)
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        remaining = self.load_failures.get(component_name, 0)
        if remaining:
            self.load_failures[component_name] = remaining - 1
            raise RuntimeError(f"failed to load {component_name}")
        self.loaded.add(component_name)

    def is_loaded(self, component_name: str) -> bool:
        return component_name in self.loaded

    def unload(self) -> None:
        self.loaded.clear()

    async def detect(self, image: np.ndarray, options: DetectionOptions) -> List[Detection]:
        self.detect_calls += 1
        self.detect_times.append(time.monotonic())
        self.detect_options.append(options)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.detect_delay:
                await asyncio.sleep(self.detect_delay)
            if self.detect_errors:
                raise self.detect_errors.pop(0)
            missing = [name for name in self._components if name not in self.loaded]
            if missing:
                raise ModelNotReadyError(f"Face models not initialized: {', '.join(missing)}")
            return list(self.faces.get(int(image[0, 0, 0]), []))
        finally:
            self.in_flight -= 1


class FakeFrameSource(FrameSource):
    """Frame source replaying a list of frames, then repeating the last one."""

    def __init__(self, frames: Sequence[Frame], close_after: Optional[int] = None) -> None:
        self._frames = list(frames)
        self._close_after = close_after
        self.reads = 0
        self.release_calls = 0
        self.released = False

    async def get_frame(self) -> Frame:
        if self.released:
            raise FrameSourceClosedError("released")
        if self._close_after is not None and self.reads >= self._close_after:
            raise FrameSourceClosedError("end of stream")
        frame = self._frames[min(self.reads, len(self._frames) - 1)]
        self.reads += 1
        return frame

    def release(self) -> None:
        self.release_calls += 1
        self.released = True


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with short delays so tests run quickly."""
    return Settings(
        MODEL_INIT_MAX_ATTEMPTS=3,
        MODEL_INIT_INITIAL_BACKOFF=0.01,
        MODEL_INIT_BACKOFF_MULTIPLIER=2.0,
        MODEL_INIT_TIMEOUT=2.0,
        DETECTION_COOLDOWN_MS=0.0,
        DETECTION_TIMEOUT=0.5,
        DETECTION_MAX_ATTEMPTS=2,
        DETECTION_RETRY_DELAY=0.0,
        REALTIME_INTERVAL=0.05,
        REALTIME_REINIT_DELAY=0.01,
        REALTIME_MAX_CONSECUTIVE_ERRORS=3,
        SNAPSHOT_BUCKET="",
    )


@pytest.fixture
def capability() -> FakeCapability:
    return FakeCapability()


@pytest.fixture
def identity_store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
async def engine(capability, identity_store, audit_sink, fast_settings):
    """Provide an engine wired to fakes."""
    engine = FaceVerificationEngine(
        capability,
        identity_store,
        audit_sink=audit_sink,
        config=fast_settings,
    )
    yield engine
    await engine.close()
