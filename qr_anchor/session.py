"""
Anchor Session

Owns one marker-placement session: throttles barcode searches, registers
found barcodes as reference targets with the tracker, forwards placed
anchors to the marker controller, and publishes the separation result.
"""

import logging
import threading
import time
from typing import Callable, Iterable, List, Optional

from .barcode_detection import BarcodeDetector, BarcodeDetectorListener
from .config import PipelineConfig
from .data_types import FrameBuffer, MarkerState, QRCodeContent, ReferenceTarget
from .errors import PlacementOutcome, SearchStatus
from .image_tracking import ImageAnchorTracker
from .marker_tracking import MarkerTrackingController, ResultChannel

logger = logging.getLogger(__name__)


class AnchorSession(BarcodeDetectorListener):
    """Session context wiring detector, tracker and marker controller."""

    def __init__(self,
                 detector: BarcodeDetector = None,
                 tracker: ImageAnchorTracker = None,
                 controller: MarkerTrackingController = None,
                 config: dict = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize anchor session.

        Args:
            detector: Barcode detector; this session becomes its listener
            tracker: Tracking subsystem for registered reference targets
            controller: Marker slot controller
            config: Optional config dict, uses PipelineConfig.SESSION if None
            clock: Time source for frames without a timestamp
        """
        self.config = config or PipelineConfig.SESSION
        self.update_interval = self.config['UPDATE_INTERVAL_S']
        self.tracking_hold = self.config['TRACKING_HOLD_S']
        self.clock = clock

        self.controller = controller or MarkerTrackingController()
        self.results: ResultChannel = self.controller.results
        self.tracker = tracker or ImageAnchorTracker()
        self.detector = detector or BarcodeDetector()
        self.detector.listener = self

        self._lock = threading.Lock()
        self._pending_target: Optional[ReferenceTarget] = None
        self._tracking_since: Optional[float] = None
        self._last_search: Optional[float] = None
        self._stale_through = 0
        self.tracking_qr_code = False
        self.content: Optional[QRCodeContent] = None

    def barcode_found(self, target: ReferenceTarget, content: QRCodeContent) -> None:
        """Queue a found target for tracking unless one is already being tracked."""
        with self._lock:
            if content.request_id is not None and content.request_id <= self._stale_through:
                logger.debug("Ignoring %s from a request dispatched before restart", target.name)
                return
            self.content = content
            if self.tracking_qr_code:
                logger.debug("Already tracking a QR code, ignoring %s", target.name)
                return
            self.tracking_qr_code = True
            self._pending_target = target

    def process_frame(self, frame: FrameBuffer) -> List[PlacementOutcome]:
        """
        Feed one camera frame through the session.

        Returns:
            Placement outcomes for anchors placed in this frame
        """
        now = frame.timestamp if frame.timestamp is not None else self.clock()
        self._apply_pending_target(now)

        if self._should_search(now):
            if self.detector.search(frame) is SearchStatus.DISPATCHED:
                self._last_search = now

        return [self.controller.on_anchor_placed(anchor) for anchor in self.tracker.update(frame)]

    def run(self, frames: Iterable[FrameBuffer], wait_for_detection: bool = False) -> MarkerState:
        """
        Process a stream of frames.

        Args:
            frames: Frame stream
            wait_for_detection: Wait for each dispatched search to finish before
                the next frame (for offline sources without real-time pacing)

        Returns:
            Marker state after the last frame
        """
        for frame in frames:
            self.process_frame(frame)
            if wait_for_detection:
                self.detector.wait_idle()
        return self.snapshot()

    def snapshot(self) -> MarkerState:
        return self.controller.snapshot()

    @property
    def separation(self):
        return self.results.latest

    def restart(self):
        """
        Clear both markers and the published result, and re-arm detection.

        Targets from requests dispatched before the restart are dropped when
        they arrive.
        """
        with self._lock:
            self._stale_through = self.detector.generation
            self._pending_target = None
            self._tracking_since = None
            self._last_search = None
            self.tracking_qr_code = False
            self.content = None
        self.controller.reset()
        self.tracker.reset_tracking()
        logger.info("Session restarted")

    def close(self):
        self.detector.close()

    def _should_search(self, now: float) -> bool:
        if self.controller.snapshot().is_complete:
            return False
        if self._last_search is None:
            return True
        return now - self._last_search >= self.update_interval

    def _apply_pending_target(self, now: float):
        with self._lock:
            target = self._pending_target
            self._pending_target = None
            if target is not None:
                self._tracking_since = now
            elif (self.tracking_qr_code and self._tracking_since is not None
                  and now - self._tracking_since >= self.tracking_hold):
                self.tracking_qr_code = False
                self._tracking_since = None

        if target is not None:
            self.tracker.reset_tracking([target])
