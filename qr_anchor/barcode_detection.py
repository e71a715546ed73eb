"""
Barcode Detection Module

Searches camera frames for a QR / barcode pattern and turns the detected
region into a rectified reference target. At most one detection request is
in flight; frames arriving while busy are dropped, not queued.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Set

import cv2
import numpy as np

from .config import PipelineConfig
from .data_types import (BarcodeObservation, FrameBuffer, Quadrilateral,
                         QRCodeContent, ReferenceTarget)
from .errors import DetectionOutcome, PatternDetectionError, SearchStatus
from .perspective_correction import PerspectiveCorrector

logger = logging.getLogger(__name__)


class PatternDetector(ABC):
    """Finds a barcode-shaped region in a frame."""

    @abstractmethod
    def detect(self, frame: FrameBuffer) -> Optional[BarcodeObservation]:
        """
        Detect a barcode in a frame.

        Args:
            frame: Source frame

        Returns:
            Observation with normalized corners, or None if nothing was found

        Raises:
            PatternDetectionError: if the detector could not run
        """


class QRCodePatternDetector(PatternDetector):
    """Pattern detector backed by cv2.QRCodeDetector."""

    def __init__(self):
        self.detector = cv2.QRCodeDetector()

    def detect(self, frame: FrameBuffer) -> Optional[BarcodeObservation]:
        gray = frame.to_gray()
        try:
            payload, points, _ = self.detector.detectAndDecode(gray)
        except cv2.error as e:
            raise PatternDetectionError(f"QR detection failed: {e}") from e

        if points is None:
            return None

        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if len(points) != 4 or not np.all(np.isfinite(points)):
            return None

        # OpenCV reports TL, TR, BR, BL relative to the code's own orientation
        w, h = frame.width, frame.height
        tl, tr, br, bl = [(float(x) / w, float(y) / h) for x, y in points]
        return BarcodeObservation(
            corners={
                'top_left': tl,
                'top_right': tr,
                'bottom_left': bl,
                'bottom_right': br,
            },
            payload=payload or None,
        )


class BarcodeDetectorListener(ABC):
    """Receives rectified reference targets found by a BarcodeDetector."""

    @abstractmethod
    def barcode_found(self, target: ReferenceTarget, content: QRCodeContent) -> None:
        pass


class BarcodeDetector:
    """
    Serializes barcode detection requests against a single-in-flight guard.

    search() never blocks: while a request is running, further frames are
    dropped. The guard is released when the request completes, whatever
    the outcome.
    """

    def __init__(self,
                 pattern_detector: PatternDetector = None,
                 corrector: PerspectiveCorrector = None,
                 listener: BarcodeDetectorListener = None,
                 executor: Executor = None,
                 config: dict = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize barcode detector.

        Args:
            pattern_detector: Detector to run on each frame (QRCodePatternDetector if None)
            corrector: Perspective corrector (default settings if None)
            listener: Receiver of found targets; events are dropped if None
            executor: Runs detection requests off the calling thread; a private
                pool is created if None, with spare workers for requests
                abandoned after a timeout
            config: Optional config dict, uses PipelineConfig.BARCODE_DETECTION if None
            clock: Monotonic time source used for the request timeout
        """
        self.config = config or PipelineConfig.BARCODE_DETECTION
        self.physical_width = self.config['PHYSICAL_WIDTH_M']
        self.orientation = self.config['ORIENTATION']
        self.request_timeout = self.config['REQUEST_TIMEOUT_S']
        self.max_abandoned = self.config['MAX_ABANDONED_REQUESTS']

        self.pattern_detector = pattern_detector or QRCodePatternDetector()
        self.corrector = corrector or PerspectiveCorrector()
        self.listener = listener
        self.clock = clock

        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.config['MAX_WORKERS'] + self.max_abandoned,
            thread_name_prefix='barcode-detector'
        )

        self._guard = threading.Lock()
        self._state_lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._generation = 0
        self._in_flight: Optional[int] = None
        self._abandoned: Set[int] = set()
        self._started_at = 0.0

        self.current_image: Optional[FrameBuffer] = None
        self.last_outcome: Optional[DetectionOutcome] = None

    @property
    def is_busy(self) -> bool:
        return self._guard.locked()

    @property
    def generation(self) -> int:
        """Id of the most recently dispatched request (0 before the first)."""
        with self._state_lock:
            return self._generation

    def search(self, frame: FrameBuffer) -> SearchStatus:
        """
        Start a detection request on the frame unless one is already running.

        Returns:
            SearchStatus.DISPATCHED if the frame was accepted, SearchStatus.BUSY
            if it was dropped
        """
        if not self._guard.acquire(blocking=False):
            if not self._recover_stale_request():
                return SearchStatus.BUSY
            if not self._guard.acquire(blocking=False):
                return SearchStatus.BUSY

        with self._state_lock:
            self._generation += 1
            generation = self._generation
            self._in_flight = generation
            self._started_at = self.clock()
            self.current_image = frame
            self._idle.clear()

        try:
            future = self.executor.submit(self._run_request, generation, frame)
        except RuntimeError as e:
            logger.error("Barcode detection failed - request could not be dispatched: %s", e)
            self.last_outcome = DetectionOutcome.DETECTION_FAILED
            self._release(generation)
            return SearchStatus.DISPATCHED

        if isinstance(future, Future):
            future.add_done_callback(self._log_unexpected_error)
        return SearchStatus.DISPATCHED

    def wait_idle(self, timeout: float = None) -> bool:
        """Block until no request is in flight. Returns False on timeout."""
        return self._idle.wait(timeout)

    def close(self):
        """Shut down the executor if this detector created it."""
        if self._owns_executor:
            self.executor.shutdown(wait=True)

    def _run_request(self, generation: int, frame: FrameBuffer) -> DetectionOutcome:
        try:
            outcome = self._complete_request(generation, frame)
            self.last_outcome = outcome
            return outcome
        finally:
            self._release(generation)

    def _complete_request(self, generation: int, frame: FrameBuffer) -> DetectionOutcome:
        try:
            observation = self.pattern_detector.detect(frame)
        except (PatternDetectionError, cv2.error) as e:
            logger.warning("Barcode detection failed - pattern detector returned an error: %s", e)
            return DetectionOutcome.DETECTION_FAILED

        if observation is None:
            logger.debug("No barcode in frame %dx%d", frame.width, frame.height)
            return DetectionOutcome.NO_OBSERVATION

        quad = Quadrilateral.from_normalized(observation.corners, frame.width, frame.height)
        rectified = self.corrector.correct(quad, frame)
        if rectified is None:
            logger.warning("Barcode detection failed - perspective correction has no output image")
            return DetectionOutcome.RECTIFICATION_FAILED

        target = ReferenceTarget(
            image=rectified,
            physical_width=self.physical_width,
            orientation=self.orientation,
            name=f"qr-{generation}"
        )
        content = QRCodeContent(width=self.physical_width, payload=observation.payload,
                                request_id=generation)

        if not self._is_current(generation):
            logger.info("Discarding result of timed-out request #%d", generation)
            return DetectionOutcome.STALE

        logger.info("Barcode found: %s (%dx%d px, payload=%r)",
                    target.name, target.pixel_size[0], target.pixel_size[1], observation.payload)
        self._emit(target, content)
        return DetectionOutcome.DETECTED

    def _emit(self, target: ReferenceTarget, content: QRCodeContent):
        listener = self.listener
        if listener is None:
            logger.debug("No listener registered, dropping %s", target.name)
            return
        try:
            listener.barcode_found(target, content)
        except Exception:
            logger.exception("Barcode listener raised while handling %s", target.name)

    def _is_current(self, generation: int) -> bool:
        with self._state_lock:
            return self._in_flight == generation

    def _release(self, generation: int):
        with self._state_lock:
            if generation in self._abandoned:
                self._abandoned.discard(generation)
                return
            if self._in_flight != generation:
                return
            self._in_flight = None
            self.current_image = None
            self._guard.release()
            self._idle.set()

    def _recover_stale_request(self) -> bool:
        if self.request_timeout is None:
            return False
        with self._state_lock:
            if self._in_flight is None:
                return False
            elapsed = self.clock() - self._started_at
            if elapsed < self.request_timeout:
                return False
            if len(self._abandoned) >= self.max_abandoned:
                logger.debug("Detection request #%d timed out but %d abandoned request(s) "
                             "are still running, staying busy", self._in_flight, len(self._abandoned))
                return False
            logger.warning("Detection request #%d has been running for %.1fs, releasing guard",
                           self._in_flight, elapsed)
            self._abandoned.add(self._in_flight)
            self._in_flight = None
            self.current_image = None
            self._guard.release()
            self._idle.set()
            return True

    @staticmethod
    def _log_unexpected_error(future: Future):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Unexpected error in barcode detection request",
                         exc_info=(type(error), error, error.__traceback__))
