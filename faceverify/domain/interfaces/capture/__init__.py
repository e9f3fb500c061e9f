from .frame_source import Frame, FrameSource, FrameSourceClosedError

__all__ = ["Frame", "FrameSource", "FrameSourceClosedError"]
