"""
Configuration settings for the QR anchor pipeline.
Centralized configuration for all modules.
"""

import numpy as np


class PipelineConfig:
    """Configuration for the entire QR anchor pipeline."""

    # Barcode Detection
    BARCODE_DETECTION = {
        'PHYSICAL_WIDTH_M': 0.1,       # Printed QR codes default to 10x10 cm
        'ORIENTATION': 'up',
        'REQUEST_TIMEOUT_S': 30.0,     # None keeps a hung request busy forever
        'MAX_WORKERS': 1,
        'MAX_ABANDONED_REQUESTS': 2    # Timed-out requests allowed to keep running
    }

    # Perspective Correction
    PERSPECTIVE_CORRECTION = {
        'COLLINEAR_TOLERANCE': 1e-6,   # Relative to the squared quad diagonal
        'MIN_OUTPUT_SIZE': 1,
        'MAX_OUTPUT_PIXELS': 4096 * 4096,
        'INTERPOLATION': 'linear'
    }

    # Image Tracking (reference image -> anchor)
    IMAGE_TRACKING = {
        'MAX_TRACKED_IMAGES': 1,
        'MIN_REFERENCE_SIDE': 256,     # Small references are upscaled before feature extraction
        'ORB_FEATURES': 1000,
        'RATIO_TEST': 0.75,
        'MIN_MATCHES': 12,
        'MIN_INLIERS': 10,
        'RANSAC_REPROJ_THRESHOLD': 5.0
    }

    # Session
    SESSION = {
        'UPDATE_INTERVAL_S': 0.1,      # Minimum frame time between barcode searches
        'TRACKING_HOLD_S': 5.0         # Keep the current target before accepting a new one
    }

    # Camera intrinsics used for pose estimation (1920x1080 landscape default)
    CAMERA = {
        'MATRIX': np.array([
            [1444.0, 0, 960.0],
            [0, 1444.0, 540.0],
            [0, 0, 1]
        ], dtype=np.float64),
        'DIST_COEFFS': np.zeros(5, dtype=np.float64)
    }

    # Visualization Colors
    VIZ_COLORS = {
        'BG_DIM': 0.4,
        'QUAD_EDGE': (0, 255, 0),
        'BASE': '#FF6B6B',
        'MOVABLE': '#4ECDC4',
        'SEPARATION': '#45B7D1'
    }

    # Corner Color Mapping for visualization
    CORNER_COLOR_MAP = {
        'top_left': (0, 0, 255),
        'top_right': (0, 255, 255),
        'bottom_left': (0, 0, 200),
        'bottom_right': (0, 200, 200),
    }
