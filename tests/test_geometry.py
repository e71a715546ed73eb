import numpy as np
import pytest

from qr_anchor import geometry


def rot_x(a):
    c, s = np.cos(a), np.sin(a)
    return np.array([[1, 0, 0], [0, c, -s], [0, s, c]])


def rot_y(a):
    c, s = np.cos(a), np.sin(a)
    return np.array([[c, 0, s], [0, 1, 0], [-s, 0, c]])


def rot_z(a):
    c, s = np.cos(a), np.sin(a)
    return np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]])


def test_distance_known_triangle():
    assert geometry.distance([0, 0, 0], [3, 4, 0]) == pytest.approx(5.0)


def test_distance_is_symmetric():
    rng = np.random.default_rng(0)
    for _ in range(50):
        a, b = rng.normal(size=3), rng.normal(size=3)
        assert geometry.distance(a, b) == geometry.distance(b, a)


def test_subtract_is_componentwise():
    np.testing.assert_allclose(geometry.subtract([1, 2, 3], [0.5, -1, 3]), [0.5, 3, 0])


def test_length():
    assert geometry.length([2, 3, 6]) == pytest.approx(7.0)


def test_xz_distance_ignores_height():
    assert geometry.xz_distance([0, 10, 0], [3, -5, 4]) == pytest.approx(5.0)


def test_translation_matrix_and_position():
    t = geometry.translation_matrix([1.0, -2.0, 0.5])
    np.testing.assert_allclose(t[:3, :3], np.eye(3))
    np.testing.assert_allclose(geometry.position_of(t), [1.0, -2.0, 0.5])


@pytest.mark.parametrize("angle", [-1.0, -0.3, 0.0, 0.4, 1.2])
def test_euler_angles_single_axis(angle):
    pitch, yaw, roll = geometry.euler_angles(rot_x(angle))
    assert (pitch, yaw, roll) == pytest.approx((angle, 0.0, 0.0), abs=1e-9)

    pitch, yaw, roll = geometry.euler_angles(rot_y(angle))
    assert (pitch, yaw, roll) == pytest.approx((0.0, angle, 0.0), abs=1e-9)

    pitch, yaw, roll = geometry.euler_angles(rot_z(angle))
    assert (pitch, yaw, roll) == pytest.approx((0.0, 0.0, angle), abs=1e-9)


def test_euler_angles_combined_rotation_matches_closed_form():
    r = rot_y(0.5) @ rot_x(-0.2) @ rot_z(0.9)
    pitch, yaw, roll = geometry.euler_angles(r)
    assert pitch == pytest.approx(np.arcsin(-r[1, 2]))
    assert yaw == pytest.approx(np.arctan2(r[0, 2], r[2, 2]))
    assert roll == pytest.approx(np.arctan2(r[1, 0], r[1, 1]))


def test_euler_angles_accepts_transform():
    t = geometry.translation_matrix([5, 5, 5])
    t[:3, :3] = rot_x(0.25)
    assert geometry.euler_angles(t)[0] == pytest.approx(0.25)


def test_euler_angles_rejects_bad_shape():
    with pytest.raises(ValueError):
        geometry.euler_angles(np.eye(2))


def test_rotate_point_quarter_turn():
    x, y = geometry.rotate_point((2, 1), (1, 1), 90)
    assert (x, y) == pytest.approx((1.0, 2.0))
