"""
Data Types

Frames, quadrilaterals, reference targets, anchors and separation results
shared by all pipeline modules.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import cv2
import numpy as np


CORNER_LABELS = ('top_left', 'top_right', 'bottom_left', 'bottom_right')

PIXEL_FORMAT_CHANNELS = {
    'GRAY': 1,
    'BGR': 3,
    'BGRA': 4,
}


def _read_only(array: np.ndarray) -> np.ndarray:
    frozen = np.array(array, copy=True)
    frozen.setflags(write=False)
    return frozen


@dataclass(frozen=True, eq=False)
class FrameBuffer:
    """An immutable camera frame tagged with its size and pixel format."""

    pixels: np.ndarray
    pixel_format: str = 'BGR'
    timestamp: Optional[float] = None

    def __post_init__(self):
        if self.pixel_format not in PIXEL_FORMAT_CHANNELS:
            raise ValueError(f"Unknown pixel format: {self.pixel_format}")

        pixels = np.asarray(self.pixels)
        if pixels.ndim not in (2, 3) or pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError(f"Frame must be a non-empty 2D pixel grid, got shape {pixels.shape}")

        channels = 1 if pixels.ndim == 2 else pixels.shape[2]
        if channels != PIXEL_FORMAT_CHANNELS[self.pixel_format]:
            raise ValueError(
                f"{self.pixel_format} frame needs {PIXEL_FORMAT_CHANNELS[self.pixel_format]} "
                f"channel(s), got {channels}"
            )

        object.__setattr__(self, 'pixels', _read_only(pixels))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def to_bgr(self) -> np.ndarray:
        """Return a writable 3-channel BGR copy of the frame."""
        if self.pixel_format == 'BGR':
            return self.pixels.copy()
        if self.pixel_format == 'BGRA':
            return cv2.cvtColor(self.pixels, cv2.COLOR_BGRA2BGR)
        return cv2.cvtColor(self.pixels, cv2.COLOR_GRAY2BGR)

    def to_gray(self) -> np.ndarray:
        """Return a single-channel copy of the frame."""
        if self.pixel_format == 'GRAY':
            return self.pixels.reshape(self.height, self.width).copy()
        if self.pixel_format == 'BGRA':
            return cv2.cvtColor(self.pixels, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(self.pixels, cv2.COLOR_BGR2GRAY)


@dataclass(frozen=True)
class Quadrilateral:
    """Four labeled corners in image-pixel coordinates (origin top-left)."""

    top_left: Tuple[float, float]
    top_right: Tuple[float, float]
    bottom_left: Tuple[float, float]
    bottom_right: Tuple[float, float]

    @classmethod
    def from_normalized(cls,
                        corners: Dict[str, Tuple[float, float]],
                        width: int,
                        height: int) -> 'Quadrilateral':
        """
        Scale normalized [0, 1] corners to pixel coordinates.

        Args:
            corners: Dict of corner label -> (x, y) in [0, 1]
            width: Source frame width in pixels
            height: Source frame height in pixels
        """
        missing = [label for label in CORNER_LABELS if label not in corners]
        if missing:
            raise ValueError(f"Missing corner(s): {', '.join(missing)}")

        scaled = {
            label: (float(corners[label][0]) * width, float(corners[label][1]) * height)
            for label in CORNER_LABELS
        }
        return cls(**scaled)

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> 'Quadrilateral':
        """Build from points ordered top-left, top-right, bottom-left, bottom-right."""
        if len(points) != 4:
            raise ValueError(f"Expected 4 corner points, got {len(points)}")
        return cls(*[(float(p[0]), float(p[1])) for p in points])

    def as_array(self) -> np.ndarray:
        """Corners as float32 (4, 2) ordered TL, TR, BR, BL (polygon order)."""
        return np.array([self.top_left, self.top_right,
                         self.bottom_right, self.bottom_left], dtype=np.float32)

    def as_dict(self) -> Dict[str, Tuple[float, float]]:
        return {label: getattr(self, label) for label in CORNER_LABELS}


@dataclass(frozen=True)
class BarcodeObservation:
    """A barcode-shaped region reported by a pattern detector."""

    corners: Dict[str, Tuple[float, float]]  # normalized [0, 1]
    payload: Optional[str] = None


class MarkerRole(Enum):
    BASE = 'Base'
    MOVABLE = 'Movable'


@dataclass(frozen=True)
class QRCodeContent:
    """Content that travels with a found barcode."""

    width: float = 0.1
    payload: Optional[str] = None
    request_id: Optional[int] = None


@dataclass(frozen=True, eq=False)
class ReferenceTarget:
    """A rectified image registered for tracking. Immutable once built."""

    image: np.ndarray
    physical_width: float = 0.1
    orientation: str = 'up'
    name: str = 'qr-target'

    def __post_init__(self):
        if self.physical_width <= 0:
            raise ValueError(f"Physical width must be positive, got {self.physical_width}")
        image = np.asarray(self.image)
        if image.ndim not in (2, 3) or image.shape[0] == 0 or image.shape[1] == 0:
            raise ValueError(f"Reference image must be a non-empty pixel grid, got shape {image.shape}")
        object.__setattr__(self, 'image', _read_only(image))

    @property
    def pixel_size(self) -> Tuple[int, int]:
        return int(self.image.shape[1]), int(self.image.shape[0])

    @property
    def physical_height(self) -> float:
        w, h = self.pixel_size
        return self.physical_width * h / w

    @property
    def physical_size(self) -> Tuple[float, float]:
        return self.physical_width, self.physical_height


@dataclass(frozen=True, eq=False)
class Anchor:
    """A tracked pose of a recognized reference target."""

    transform: np.ndarray  # 4x4 world transform
    target: Optional[ReferenceTarget] = None
    name: Optional[str] = None

    def __post_init__(self):
        transform = np.asarray(self.transform, dtype=np.float64)
        if transform.shape != (4, 4):
            raise ValueError(f"Anchor transform must be 4x4, got {transform.shape}")
        object.__setattr__(self, 'transform', _read_only(transform))

    @property
    def position(self) -> np.ndarray:
        return self.transform[:3, 3].copy()


@dataclass(frozen=True, eq=False)
class SeparationResult:
    """Separation between the base and movable markers."""

    vector: np.ndarray
    distance: float
    base: Anchor
    movable: Anchor


@dataclass
class MarkerState:
    """Snapshot of the two marker slots."""

    base: Optional[Anchor] = None
    movable: Optional[Anchor] = None
    separation: Optional[SeparationResult] = None
    ignored_placements: int = field(default=0)

    @property
    def is_complete(self) -> bool:
        return self.base is not None and self.movable is not None
