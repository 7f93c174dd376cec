"""
Shared fixtures: synthetic TC001 frames and fake capture/display objects.
"""

import numpy as np
import pytest

WIDTH = 256
HEIGHT = 192


def make_frame(thermal_raw=None, luma=0, width=WIDTH, height=HEIGHT):
    """Build a (2*height, width, 2) frame: flat YUYV on top, raw counts below."""
    frame = np.zeros((2 * height, width, 2), dtype=np.uint8)
    frame[:height, :, 0] = luma
    frame[:height, :, 1] = 128  # neutral chroma

    if thermal_raw is None:
        thermal_raw = np.full((height, width), 19000, dtype=np.uint16)
    thermal_raw = np.asarray(thermal_raw, dtype=np.uint16)
    frame[height:, :, 0] = thermal_raw & 0xFF
    frame[height:, :, 1] = thermal_raw >> 8
    return frame


class FakeCapture:
    """Stands in for cv2.VideoCapture; items are frames, None (empty) or exceptions."""

    def __init__(self, frames=(), opened=True):
        self.frames = list(frames)
        self.opened = opened
        self.props = {}
        self.released = False

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        if not self.frames:
            return False, None
        item = self.frames.pop(0)
        if isinstance(item, Exception):
            raise item
        if item is None:
            return False, None
        return True, item

    def release(self):
        self.released = True


class FakeSink:
    def __init__(self, stop_after=1, max_polls=50):
        self.stop_after = stop_after
        self.max_polls = max_polls
        self.shown = []
        self.polls = 0

    def show(self, image, peak=None):
        self.shown.append((image, peak))

    def poll_stop(self, timeout_ms=10):
        self.polls += 1
        return len(self.shown) >= self.stop_after or self.polls >= self.max_polls

    def close(self):
        pass


def factory_for(*captures):
    """Capture factory handing out the given fakes one connect at a time."""
    pending = list(captures)
    opened = []

    def _factory(device):
        cap = pending.pop(0)
        opened.append(cap)
        return cap

    _factory.opened = opened
    return _factory


@pytest.fixture
def hot_frame():
    raw = np.full((HEIGHT, WIDTH), 19000, dtype=np.uint16)
    raw[10, 10] = 20000
    return make_frame(raw)
