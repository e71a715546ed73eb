import numpy as np
import plotly.graph_objects as go

from qr_anchor import Anchor, MarkerTrackingController, Quadrilateral
from qr_anchor.geometry import translation_matrix
from qr_anchor.visualization import (add_label_to_image, create_detection_panel,
                                     create_marker_figure, draw_quadrilateral, fit_to_height)


def test_label_keeps_size_and_converts_gray():
    gray = np.zeros((100, 200), dtype=np.uint8)
    labeled = add_label_to_image(gray, "hello", position='bottom')
    assert labeled.shape == (100, 200, 3)


def test_fit_to_height_keeps_aspect_ratio():
    img = np.zeros((50, 100, 4), dtype=np.uint8)
    assert fit_to_height(img, 200).shape == (200, 400, 3)


def test_draw_quadrilateral_does_not_touch_input():
    img = np.zeros((120, 160, 3), dtype=np.uint8)
    quad = Quadrilateral.from_points([(10, 10), (100, 10), (10, 90), (100, 90)])

    vis = draw_quadrilateral(img, quad)

    assert vis.any()
    assert not img.any()


def test_detection_panel_with_and_without_rectified_image():
    frame = np.full((240, 320, 3), 90, dtype=np.uint8)
    quad = Quadrilateral.from_points([(10, 10), (100, 10), (10, 90), (100, 90)])

    panel = create_detection_panel(frame, quad, np.zeros((80, 90), dtype=np.uint8), height=120)
    assert panel.shape == (120, 160 + 4 + 135, 3)

    empty = create_detection_panel(frame, None, None, height=120)
    assert empty.shape == (120, 160 + 4 + 160, 3)


def test_marker_figure_has_trace_per_marker_and_separation():
    base = Anchor(transform=translation_matrix([0, 0, 1]), name='qr-1')
    movable = Anchor(transform=translation_matrix([0.2, 0, 1]), name='qr-2')
    separation = MarkerTrackingController.compute_separation(base, movable)

    fig = create_marker_figure(base, movable, separation)

    assert isinstance(fig, go.Figure)
    assert len(fig.data) == 3
    assert fig.data[2].mode == 'lines'
    assert len(create_marker_figure(base, None).data) == 1
