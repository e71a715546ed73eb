"""
Image Tracking Module

Recognizes registered reference targets in live frames and places an anchor
for each. Targets are matched with ORB features and a RANSAC homography;
the anchor pose comes from solvePnP on the target's physical size.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import cv2
import numpy as np

from .config import PipelineConfig
from .data_types import Anchor, FrameBuffer, ReferenceTarget

logger = logging.getLogger(__name__)


@dataclass
class _TrackedTarget:
    target: ReferenceTarget
    keypoints: list
    descriptors: Optional[np.ndarray]
    corners: np.ndarray  # target outline in feature-image pixels, TL TR BR BL
    anchor: Optional[Anchor] = field(default=None)


class ImageAnchorTracker:
    """Places one anchor per registered reference target."""

    def __init__(self,
                 config: dict = None,
                 camera_matrix: np.ndarray = None,
                 dist_coeffs: np.ndarray = None):
        """
        Initialize image anchor tracker.

        Args:
            config: Optional config dict, uses PipelineConfig.IMAGE_TRACKING if None
            camera_matrix: 3x3 intrinsics, uses PipelineConfig.CAMERA if None
            dist_coeffs: Distortion coefficients, uses PipelineConfig.CAMERA if None
        """
        self.config = config or PipelineConfig.IMAGE_TRACKING
        self.max_tracked = self.config['MAX_TRACKED_IMAGES']
        self.ratio_test = self.config['RATIO_TEST']
        self.min_matches = self.config['MIN_MATCHES']
        self.min_inliers = self.config['MIN_INLIERS']
        self.ransac_threshold = self.config['RANSAC_REPROJ_THRESHOLD']
        self.min_reference_side = self.config['MIN_REFERENCE_SIDE']

        self.camera_matrix = (PipelineConfig.CAMERA['MATRIX'] if camera_matrix is None
                              else np.asarray(camera_matrix, dtype=np.float64))
        self.dist_coeffs = (PipelineConfig.CAMERA['DIST_COEFFS'] if dist_coeffs is None
                            else np.asarray(dist_coeffs, dtype=np.float64))

        self.orb = cv2.ORB_create(nfeatures=self.config['ORB_FEATURES'])
        self.matcher = cv2.BFMatcher(cv2.NORM_HAMMING)
        self._tracked: List[_TrackedTarget] = []

    @property
    def targets(self) -> List[ReferenceTarget]:
        return [t.target for t in self._tracked]

    @property
    def anchors(self) -> List[Anchor]:
        return [t.anchor for t in self._tracked if t.anchor is not None]

    def reset_tracking(self, targets: Sequence[ReferenceTarget] = ()):
        """Replace the registered targets and forget all placed anchors."""
        if len(targets) > self.max_tracked:
            logger.warning("Tracking %d of %d reference images", self.max_tracked, len(targets))
            targets = list(targets)[:self.max_tracked]

        self._tracked = [self._prepare(target) for target in targets]
        logger.info("Tracking reset with %d reference image(s)", len(self._tracked))

    def update(self, frame: FrameBuffer) -> List[Anchor]:
        """
        Look for registered targets in the frame.

        Returns:
            Anchors placed in this frame (each target is anchored once)
        """
        pending = [t for t in self._tracked if t.anchor is None and t.descriptors is not None]
        if not pending:
            return []

        gray = frame.to_gray()
        keypoints, descriptors = self.orb.detectAndCompute(gray, None)
        if descriptors is None or len(keypoints) < self.min_matches:
            return []

        placed = []
        for tracked in pending:
            image_corners = self.locate(tracked, keypoints, descriptors)
            if image_corners is None:
                continue

            transform = self.estimate_pose(tracked.target, image_corners)
            if transform is None:
                continue

            tracked.anchor = Anchor(transform=transform, target=tracked.target,
                                    name=tracked.target.name)
            logger.info("Anchor placed for %s at %s", tracked.target.name,
                        np.round(tracked.anchor.position, 3))
            placed.append(tracked.anchor)

        return placed

    def locate(self, tracked: _TrackedTarget, keypoints, descriptors) -> Optional[np.ndarray]:
        """Project the target outline into the frame, or None if not found."""
        pairs = self.matcher.knnMatch(tracked.descriptors, descriptors, k=2)
        good = [p[0] for p in pairs
                if len(p) == 2 and p[0].distance < self.ratio_test * p[1].distance]
        if len(good) < self.min_matches:
            return None

        src = np.float32([tracked.keypoints[m.queryIdx].pt for m in good]).reshape(-1, 1, 2)
        dst = np.float32([keypoints[m.trainIdx].pt for m in good]).reshape(-1, 1, 2)

        homography, inlier_mask = cv2.findHomography(src, dst, cv2.RANSAC, self.ransac_threshold)
        if homography is None or inlier_mask is None:
            return None

        inliers = int(inlier_mask.sum())
        if inliers < self.min_inliers:
            logger.debug("%s: %d inliers, need %d", tracked.target.name, inliers, self.min_inliers)
            return None

        outline = cv2.perspectiveTransform(tracked.corners.reshape(-1, 1, 2), homography)
        return outline.reshape(-1, 2)

    def estimate_pose(self, target: ReferenceTarget, image_corners: np.ndarray) -> Optional[np.ndarray]:
        """
        Solve the target's pose from its outline in the frame.

        Args:
            target: Reference target with its physical size
            image_corners: Outline in frame pixels, ordered TL, TR, BR, BL

        Returns:
            4x4 transform of the target in camera coordinates, or None
        """
        half_w = target.physical_width / 2
        half_h = target.physical_height / 2
        object_points = np.array([
            [-half_w, half_h, 0],
            [half_w, half_h, 0],
            [half_w, -half_h, 0],
            [-half_w, -half_h, 0]
        ], dtype=np.float64)

        success, rvec, tvec = cv2.solvePnP(
            object_points, image_corners.astype(np.float64),
            self.camera_matrix, self.dist_coeffs,
            flags=cv2.SOLVEPNP_ITERATIVE
        )
        if not success:
            return None

        rotation, _ = cv2.Rodrigues(rvec)
        transform = np.eye(4, dtype=np.float64)
        transform[:3, :3] = rotation
        transform[:3, 3] = tvec.flatten()
        return transform

    def _prepare(self, target: ReferenceTarget) -> _TrackedTarget:
        image = target.image
        if image.ndim == 3 and image.shape[2] == 4:
            gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.ndim == 3 and image.shape[2] == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            gray = image.reshape(image.shape[0], image.shape[1])

        h, w = gray.shape[:2]
        scale = max(1.0, self.min_reference_side / min(w, h))
        if scale > 1.0:
            gray = cv2.resize(gray, (int(round(w * scale)), int(round(h * scale))),
                              interpolation=cv2.INTER_NEAREST)
            h, w = gray.shape[:2]

        keypoints, descriptors = self.orb.detectAndCompute(gray, None)
        if descriptors is None or len(keypoints) < self.min_matches:
            logger.warning("%s has too few features to track (%d)",
                           target.name, 0 if keypoints is None else len(keypoints))
            descriptors = None

        corners = np.array([[0, 0], [w, 0], [w, h], [0, h]], dtype=np.float32)
        return _TrackedTarget(target=target, keypoints=list(keypoints or []),
                              descriptors=descriptors, corners=corners)
