"""
QR Anchor Modules

This package contains modular components for QR marker anchoring:
- barcode_detection: Single-in-flight barcode search and target building
- perspective_correction: Rectifies a detected quadrilateral
- image_tracking: Places anchors for registered reference targets
- marker_tracking: Base / movable marker slots and separation result
- geometry: Vector and rotation math
- session: Wires the components into one session
"""

from .barcode_detection import (BarcodeDetector, BarcodeDetectorListener,
                                PatternDetector, QRCodePatternDetector)
from .data_types import (Anchor, BarcodeObservation, FrameBuffer, MarkerRole,
                         MarkerState, QRCodeContent, Quadrilateral,
                         ReferenceTarget, SeparationResult)
from .errors import (DetectionOutcome, PatternDetectionError, PlacementOutcome,
                     QRAnchorError, RectificationError, SearchStatus)
from .image_tracking import ImageAnchorTracker
from .marker_tracking import MarkerTrackingController, ResultChannel
from .perspective_correction import PerspectiveCorrector
from .session import AnchorSession

__all__ = [
    'Anchor',
    'AnchorSession',
    'BarcodeDetector',
    'BarcodeDetectorListener',
    'BarcodeObservation',
    'DetectionOutcome',
    'FrameBuffer',
    'ImageAnchorTracker',
    'MarkerRole',
    'MarkerState',
    'MarkerTrackingController',
    'PatternDetectionError',
    'PatternDetector',
    'PerspectiveCorrector',
    'PlacementOutcome',
    'QRAnchorError',
    'QRCodeContent',
    'QRCodePatternDetector',
    'Quadrilateral',
    'RectificationError',
    'ReferenceTarget',
    'ResultChannel',
    'SearchStatus',
    'SeparationResult',
]
