import threading
from concurrent.futures import Executor, Future

import numpy as np
import pytest

from qr_anchor import BarcodeDetectorListener, BarcodeObservation, PatternDetector
from qr_anchor.errors import PatternDetectionError


class ManualExecutor(Executor):
    """Holds submitted requests until run_pending() is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)

    def shutdown(self, wait=True, **kwargs):
        self.pending.clear()


class FakePatternDetector(PatternDetector):
    """Returns a fixed observation (or raises) and records the frames it saw."""

    def __init__(self, corners=None, payload='marker', error=None, block: threading.Event = None):
        self.corners = corners
        self.payload = payload
        self.error = error
        self.block = block
        self.frames = []

    def detect(self, frame):
        self.frames.append(frame)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        if self.corners is None:
            return None
        return BarcodeObservation(corners=self.corners, payload=self.payload)


class RecordingListener(BarcodeDetectorListener):

    def __init__(self):
        self.found = []

    def barcode_found(self, target, content):
        self.found.append((target, content))


def normalized_rect(x0, y0, x1, y1, width, height):
    return {
        'top_left': (x0 / width, y0 / height),
        'top_right': (x1 / width, y0 / height),
        'bottom_left': (x0 / width, y1 / height),
        'bottom_right': (x1 / width, y1 / height),
    }


def textured_image(size=320, block=16, seed=7):
    """Random block texture with plenty of ORB corners."""
    rng = np.random.default_rng(seed)
    cells = rng.integers(0, 256, size=(size // block, size // block), dtype=np.uint8)
    return np.kron(cells, np.ones((block, block), dtype=np.uint8))


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def hd_rect_corners():
    return normalized_rect(100, 100, 500, 400, 1920, 1080)


@pytest.fixture
def failing_detector():
    return FakePatternDetector(error=PatternDetectionError("vision request failed"))
