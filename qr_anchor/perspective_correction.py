"""
Perspective Correction Module

Maps a detected quadrilateral in a camera frame onto an upright rectangle.
Solves the homography sending the four labeled corners to the corners of the
output rectangle, then resamples the source through its inverse.
"""

import itertools
import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .config import PipelineConfig
from .data_types import FrameBuffer, Quadrilateral
from .errors import RectificationError

logger = logging.getLogger(__name__)

INTERPOLATION_FLAGS = {
    'nearest': cv2.INTER_NEAREST,
    'linear': cv2.INTER_LINEAR,
    'cubic': cv2.INTER_CUBIC,
}


class PerspectiveCorrector:
    """Rectifies a quadrilateral region of a frame into an upright image."""

    def __init__(self, config: dict = None):
        """
        Initialize perspective corrector.

        Args:
            config: Optional config dict, uses PipelineConfig.PERSPECTIVE_CORRECTION if None
        """
        self.config = config or PipelineConfig.PERSPECTIVE_CORRECTION
        self.collinear_tolerance = self.config['COLLINEAR_TOLERANCE']
        self.min_output_size = self.config['MIN_OUTPUT_SIZE']
        self.max_output_pixels = self.config['MAX_OUTPUT_PIXELS']
        self.interpolation = INTERPOLATION_FLAGS[self.config['INTERPOLATION']]

    def is_degenerate(self, quad: Quadrilateral) -> bool:
        """True if any three corners are collinear (or coincide)."""
        pts = quad.as_array().astype(np.float64)
        if not np.all(np.isfinite(pts)):
            return True

        diffs = pts[:, None, :] - pts[None, :, :]
        scale = float(np.max(np.sum(diffs ** 2, axis=-1)))
        if scale == 0:
            return True

        for a, b, c in itertools.combinations(pts, 3):
            cross = (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])
            if abs(cross) <= self.collinear_tolerance * scale:
                return True
        return False

    def output_size(self, quad: Quadrilateral) -> Tuple[int, int]:
        """Output (width, height): the longer of each pair of opposite edges."""
        tl, tr, br, bl = quad.as_array().astype(np.float64)
        width = max(np.linalg.norm(tr - tl), np.linalg.norm(br - bl))
        height = max(np.linalg.norm(bl - tl), np.linalg.norm(br - tr))
        return (max(int(round(width)), self.min_output_size),
                max(int(round(height)), self.min_output_size))

    def build_transform(self, quad: Quadrilateral) -> Tuple[np.ndarray, Tuple[int, int]]:
        """
        Compute the homography from the quadrilateral to the output rectangle.

        Returns:
            Tuple of (3x3 homography, (width, height))

        Raises:
            RectificationError: if the quadrilateral is degenerate or the
                transform cannot be constructed
        """
        if self.is_degenerate(quad):
            raise RectificationError(f"Degenerate quadrilateral: {quad.as_dict()}")

        width, height = self.output_size(quad)
        if width * height > self.max_output_pixels:
            raise RectificationError(f"Output {width}x{height} exceeds the pixel budget")

        src = quad.as_array()
        dst = np.array([
            [0, 0],
            [width, 0],
            [width, height],
            [0, height]
        ], dtype=np.float32)

        try:
            matrix = cv2.getPerspectiveTransform(src, dst)
        except cv2.error as e:
            raise RectificationError(f"Perspective transform failed: {e}") from e

        if not np.all(np.isfinite(matrix)) or abs(np.linalg.det(matrix)) < 1e-12:
            raise RectificationError("Perspective transform is singular")

        return matrix, (width, height)

    def correct(self, quad: Quadrilateral, frame: FrameBuffer) -> Optional[np.ndarray]:
        """
        Rectify the quadrilateral region of the frame.

        Args:
            quad: Four labeled pixel-space corners
            frame: Source frame

        Returns:
            Upright image in the frame's pixel format, or None when no
            usable image could be produced this cycle
        """
        try:
            matrix, (width, height) = self.build_transform(quad)
            rectified = cv2.warpPerspective(
                frame.pixels, matrix, (width, height),
                flags=self.interpolation,
                borderMode=cv2.BORDER_REPLICATE
            )
        except RectificationError as e:
            logger.warning("Rectification failed: %s", e)
            return None
        except (cv2.error, MemoryError) as e:
            logger.warning("Rectification failed while resampling: %s", e)
            return None

        if rectified is None or rectified.size == 0:
            logger.warning("Rectification produced an empty image")
            return None

        return rectified
