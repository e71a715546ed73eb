import cv2
import numpy as np
import pytest

from qr_anchor import FrameBuffer, PerspectiveCorrector, Quadrilateral, RectificationError
from qr_anchor.config import PipelineConfig


def solid_frame(width, height, color=(30, 120, 200)):
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:] = color
    return FrameBuffer(pixels)


def test_axis_aligned_rectangle_of_solid_color_is_undistorted():
    frame = solid_frame(640, 480)
    quad = Quadrilateral.from_points([(100, 100), (500, 100), (100, 400), (500, 400)])

    rectified = PerspectiveCorrector().correct(quad, frame)

    assert rectified.shape == (300, 400, 3)
    assert np.all(rectified == np.array([30, 120, 200], dtype=np.uint8))


def test_hd_frame_normalized_corners_keep_aspect_ratio():
    frame = solid_frame(1920, 1080)
    corners = {
        'top_left': (100 / 1920, 100 / 1080),
        'top_right': (500 / 1920, 100 / 1080),
        'bottom_left': (100 / 1920, 400 / 1080),
        'bottom_right': (500 / 1920, 400 / 1080),
    }
    quad = Quadrilateral.from_normalized(corners, frame.width, frame.height)

    rectified = PerspectiveCorrector().correct(quad, frame)

    h, w = rectified.shape[:2]
    assert w / h == pytest.approx(400 / 300)


def test_perspective_quad_is_rectified_upright():
    # Left half black, right half white, warped into a tilted quadrilateral
    source = np.zeros((100, 200, 3), dtype=np.uint8)
    source[:, 100:] = 255
    dst_corners = np.float32([[150, 80], [470, 120], [460, 330], [140, 390]])  # TL TR BR BL
    homography = cv2.getPerspectiveTransform(
        np.float32([[0, 0], [200, 0], [200, 100], [0, 100]]), dst_corners)
    canvas = cv2.warpPerspective(source, homography, (640, 480),
                                 borderMode=cv2.BORDER_CONSTANT, borderValue=(128, 128, 128))

    quad = Quadrilateral(top_left=(150, 80), top_right=(470, 120),
                         bottom_left=(140, 390), bottom_right=(460, 330))
    rectified = PerspectiveCorrector().correct(quad, FrameBuffer(canvas))

    h, w = rectified.shape[:2]
    assert rectified[h // 2, w // 4].max() < 40
    assert rectified[h // 2, 3 * w // 4].min() > 215
    assert rectified[h // 5, w // 5].max() < 40
    assert rectified[4 * h // 5, 4 * w // 5].min() > 215


def test_collinear_corners_produce_no_image():
    frame = solid_frame(640, 480)
    quad = Quadrilateral(top_left=(0, 0), top_right=(100, 0),
                         bottom_left=(0, 100), bottom_right=(200, 0))

    assert PerspectiveCorrector().correct(quad, frame) is None


def test_coincident_corners_produce_no_image():
    frame = solid_frame(640, 480)
    quad = Quadrilateral.from_points([(50, 50)] * 4)

    assert PerspectiveCorrector().correct(quad, frame) is None


def test_non_finite_corners_produce_no_image():
    frame = solid_frame(640, 480)
    quad = Quadrilateral.from_points([(np.nan, 0), (100, 0), (0, 100), (100, 100)])

    assert PerspectiveCorrector().correct(quad, frame) is None


def test_build_transform_raises_for_degenerate_quad():
    quad = Quadrilateral.from_points([(0, 0), (10, 10), (20, 20), (30, 0)])
    with pytest.raises(RectificationError):
        PerspectiveCorrector().build_transform(quad)


def test_output_over_pixel_budget_produces_no_image():
    config = dict(PipelineConfig.PERSPECTIVE_CORRECTION, MAX_OUTPUT_PIXELS=100)
    frame = solid_frame(640, 480)
    quad = Quadrilateral.from_points([(0, 0), (100, 0), (0, 100), (100, 100)])

    assert PerspectiveCorrector(config).correct(quad, frame) is None


def test_output_size_uses_longer_opposite_edges():
    quad = Quadrilateral.from_points([(0, 0), (100, 0), (10, 50), (90, 60)])
    w, h = PerspectiveCorrector().output_size(quad)
    assert w == 100
    assert h == round(np.hypot(10, 60))


@pytest.mark.parametrize("pixel_format, channels", [('GRAY', None), ('BGRA', 4)])
def test_other_pixel_formats(pixel_format, channels):
    shape = (240, 320) if channels is None else (240, 320, channels)
    frame = FrameBuffer(np.full(shape, 77, dtype=np.uint8), pixel_format=pixel_format)
    quad = Quadrilateral.from_points([(10, 10), (110, 10), (10, 60), (110, 60)])

    rectified = PerspectiveCorrector().correct(quad, frame)

    assert rectified.shape[:2] == (50, 100)
    assert rectified.ndim == (2 if channels is None else 3)
    assert np.all(rectified == 77)
