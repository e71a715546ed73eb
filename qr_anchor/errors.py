"""
Error and outcome types for the QR anchor pipeline.

None of these are fatal: detection and placement failures are recorded and
the next frame is the retry path.
"""

from enum import Enum


class QRAnchorError(Exception):
    """Base class for pipeline errors."""


class PatternDetectionError(QRAnchorError):
    """The underlying pattern detector failed to run on a frame."""


class RectificationError(QRAnchorError):
    """A perspective transform could not be built or resampled."""


class SearchStatus(Enum):
    """Immediate result of a barcode search request."""
    DISPATCHED = 'dispatched'
    BUSY = 'busy'


class DetectionOutcome(Enum):
    """Result of one completed detection cycle."""
    DETECTED = 'detected'
    DETECTION_FAILED = 'detection_failed'
    NO_OBSERVATION = 'no_observation'
    RECTIFICATION_FAILED = 'rectification_failed'
    STALE = 'stale'


class PlacementOutcome(Enum):
    """Result of an anchor placement event."""
    BASE_PLACED = 'base_placed'
    MOVABLE_PLACED = 'movable_placed'
    IGNORED = 'ignored'
