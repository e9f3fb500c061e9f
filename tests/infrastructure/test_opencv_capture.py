"""Tests for the OpenCV frame source with the capture device mocked."""
import numpy as np
import pytest

from faceverify.domain.interfaces.capture.frame_source import FrameSourceClosedError
from faceverify.infrastructure.capture import opencv as opencv_capture
from faceverify.infrastructure.capture.opencv import OpenCVFrameSource


class FakeVideoCapture:
    instances = []

    def __init__(self, source, *args):
        self.source = source
        self.args = args
        self.frames = [np.full((4, 4, 3), i, dtype=np.uint8) for i in range(2)]
        self.opened = source != "missing"
        self.release_calls = 0
        FakeVideoCapture.instances.append(self)

    def isOpened(self):
        return self.opened

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.release_calls += 1


@pytest.fixture(autouse=True)
def fake_capture(monkeypatch):
    FakeVideoCapture.instances = []
    monkeypatch.setattr(opencv_capture.cv2, "VideoCapture", FakeVideoCapture)


class TestOpenCVFrameSource:
    async def test_opens_lazily_and_reads_frames(self):
        source = OpenCVFrameSource(0)
        assert FakeVideoCapture.instances == []

        first = await source.get_frame()
        second = await source.get_frame()

        assert len(FakeVideoCapture.instances) == 1
        assert first[0, 0, 0] == 0 and second[0, 0, 0] == 1

    async def test_end_of_stream_closes_source(self):
        source = OpenCVFrameSource("clip.mp4")
        await source.get_frame()
        await source.get_frame()
        with pytest.raises(FrameSourceClosedError):
            await source.get_frame()

    async def test_unopenable_device(self):
        with pytest.raises(FrameSourceClosedError):
            await OpenCVFrameSource("missing").get_frame()

    async def test_release_is_idempotent(self):
        source = OpenCVFrameSource(0)
        await source.get_frame()

        source.release()
        source.release()

        assert FakeVideoCapture.instances[0].release_calls == 1
        assert source.is_released
        with pytest.raises(FrameSourceClosedError):
            await source.get_frame()

    async def test_api_preference_is_forwarded(self):
        source = OpenCVFrameSource("rtsp://camera/stream", api_preference=1900)
        await source.get_frame()
        assert FakeVideoCapture.instances[0].args == (1900,)
