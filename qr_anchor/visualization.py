"""
Visualization utilities for the QR anchor pipeline.
Debug overlays for detections and a 3D view of the placed markers.
"""

from typing import Optional, Tuple

import cv2
import numpy as np
import plotly.graph_objects as go

from .config import PipelineConfig
from .data_types import Anchor, Quadrilateral, SeparationResult


def add_label_to_image(img: np.ndarray,
                       text: str,
                       color: Tuple[int, int, int] = (255, 255, 255),
                       bg_color: Tuple[int, int, int] = (0, 0, 0),
                       position: str = 'top') -> np.ndarray:
    """
    Add a labeled banner to an image.

    Args:
        img: Input image (BGR or grayscale)
        text: Label text
        color: Text color
        bg_color: Background color
        position: 'top' or 'bottom'

    Returns:
        Image with label added
    """
    if len(img.shape) == 2:
        vis = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    else:
        vis = img.copy()

    h, w = vis.shape[:2]
    font_scale = max(w / 600.0, 0.4)
    thickness = max(1, int(w / 300.0))
    bar_h = max(int(h * 0.08), 16)

    if position == 'top':
        y_start, y_end = 0, bar_h
        text_y = int(bar_h * 0.7)
    else:
        y_start, y_end = h - bar_h, h
        text_y = h - int(bar_h * 0.3)

    cv2.rectangle(vis, (0, y_start), (w, y_end), bg_color, -1)
    cv2.putText(vis, text, (10, text_y), cv2.FONT_HERSHEY_SIMPLEX,
                font_scale, color, thickness, cv2.LINE_AA)

    return vis


def fit_to_height(img: np.ndarray, height: int) -> np.ndarray:
    """Resize an image to the given height, keeping its aspect ratio, as BGR."""
    if len(img.shape) == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    elif img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    h, w = img.shape[:2]
    width = max(1, int(round(w * height / h)))
    return cv2.resize(img, (width, height), interpolation=cv2.INTER_NEAREST)


def draw_quadrilateral(img: np.ndarray,
                       quad: Quadrilateral,
                       show_labels: bool = True) -> np.ndarray:
    """
    Draw a detected quadrilateral with its labeled corners.

    Args:
        img: Input BGR image
        quad: Corners in pixel coordinates
        show_labels: Whether to show corner labels

    Returns:
        Image with the quadrilateral drawn
    """
    vis = img.copy()
    pts = quad.as_array().astype(np.int32)
    cv2.polylines(vis, [pts], True, PipelineConfig.VIZ_COLORS['QUAD_EDGE'], 2, cv2.LINE_AA)

    for name, (x, y) in quad.as_dict().items():
        color = PipelineConfig.CORNER_COLOR_MAP.get(name, (200, 200, 200))
        cv2.circle(vis, (int(x), int(y)), 6, color, thickness=-1)

        if show_labels:
            label = name.replace('_', ' ').title()
            cv2.putText(vis, label, (int(x) + 8, int(y) - 8),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 0), 3)
            cv2.putText(vis, label, (int(x) + 8, int(y) - 8),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)

    return vis


def create_detection_panel(frame: np.ndarray,
                           quad: Optional[Quadrilateral],
                           rectified: Optional[np.ndarray],
                           height: int = 360) -> np.ndarray:
    """
    Side-by-side view of the frame with its detection and the rectified image.

    Returns:
        BGR panel image
    """
    base = frame if quad is None else draw_quadrilateral(frame, quad)
    left = add_label_to_image(fit_to_height(base, height), "1. Detection")

    if rectified is None:
        blank = (fit_to_height(frame, height).astype(float)
                 * PipelineConfig.VIZ_COLORS['BG_DIM']).astype(np.uint8)
        right = add_label_to_image(blank, "2. No rectified image", color=(0, 0, 255))
    else:
        rh, rw = rectified.shape[:2]
        right = add_label_to_image(fit_to_height(rectified, height), f"2. Rectified {rw}x{rh}")

    sep = np.full((height, 4, 3), 255, dtype=np.uint8)
    return np.hstack([left, sep, right])


def create_marker_figure(base: Optional[Anchor],
                         movable: Optional[Anchor],
                         separation: Optional[SeparationResult] = None) -> go.Figure:
    """Interactive 3D view of the placed markers and their separation."""
    colors = PipelineConfig.VIZ_COLORS
    fig = go.Figure()

    for role, anchor, color in (('Base', base, colors['BASE']),
                                ('Movable', movable, colors['MOVABLE'])):
        if anchor is None:
            continue
        pos = anchor.position
        fig.add_trace(go.Scatter3d(
            x=[pos[0]], y=[pos[1]], z=[pos[2]],
            mode='markers+text',
            marker=dict(size=8, color=color, symbol='diamond'),
            text=[role],
            textposition='top center',
            name=f"{role} ({anchor.name})"
        ))

    if separation is not None:
        start = separation.base.position
        end = separation.movable.position
        fig.add_trace(go.Scatter3d(
            x=[start[0], end[0]], y=[start[1], end[1]], z=[start[2], end[2]],
            mode='lines',
            line=dict(color=colors['SEPARATION'], width=5),
            name=f"Separation {separation.distance:.3f} m"
        ))

    fig.update_layout(
        title=dict(text='QR Marker Placement', font=dict(size=20)),
        scene=dict(
            xaxis=dict(title='X (m)'),
            yaxis=dict(title='Y (m)'),
            zaxis=dict(title='Z (m)'),
            aspectmode='data'
        ),
        margin=dict(l=0, r=0, t=50, b=0),
        showlegend=True
    )
    return fig
