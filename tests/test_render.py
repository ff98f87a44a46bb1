import math

import numpy as np
import pytest

from robovision.image import Image, ImageError, ImageType
from robovision.render import append, draw_laser, draw_point_rgb_laser, rotate
from robovision.robot import Robot


def _filled(width, height, colour):
    image = Image.blank(ImageType.RGB, width, height)
    image.data[:, :] = colour
    return image


def test_append_skips_black_pixels():
    a = _filled(10, 10, (5, 6, 7))
    b = Image.blank(ImageType.RGB, 3, 3)
    b.data[1, 1] = (200, 100, 50)
    append(a, b, 2, 4)
    assert tuple(a.data[5, 3]) == (200, 100, 50)
    assert tuple(a.data[4, 2]) == (5, 6, 7)
    assert int((a.data != (5, 6, 7)).any(axis=2).sum()) == 1


def test_append_clips_outside_region():
    a = Image.blank(ImageType.RGB, 5, 5)
    b = _filled(4, 4, (1, 2, 3))
    append(a, b, -2, 3)
    painted = (a.data != 0).any(axis=2)
    assert painted[3:5, 0:2].all()
    assert int(painted.sum()) == 4


def test_append_fully_outside_changes_nothing():
    a = _filled(5, 5, (9, 9, 9))
    before = a.data.copy()
    append(a, _filled(2, 2, (1, 1, 1)), 10, 10)
    assert np.array_equal(a.data, before)


def test_draw_point_rgb_laser_paints_three_by_three():
    rgb = Image.blank(ImageType.RGB, 8, 8)
    draw_point_rgb_laser(rgb, 4, 4, 10, 20, 30)
    painted = (rgb.data != 0).any(axis=2)
    assert int(painted.sum()) == 9
    assert tuple(rgb.data[4, 4]) == (30, 20, 10)
    assert painted[3:6, 3:6].all()


def test_draw_point_rgb_laser_clamps_to_border():
    rgb = Image.blank(ImageType.RGB, 8, 8)
    draw_point_rgb_laser(rgb, -5, 100, 1, 1, 1)
    painted = (rgb.data != 0).any(axis=2)
    assert int(painted.sum()) == 9
    assert painted[5:8, 0:3].all()


def test_draw_point_rgb_laser_rejects_grey():
    grey = Image.blank(ImageType.GREY, 8, 8)
    with pytest.raises(ImageError):
        draw_point_rgb_laser(grey, 4, 4, 0, 255, 0)


def test_draw_laser_draws_ahead_of_robot():
    rgb = Image.blank(ImageType.RGB, 100, 100)
    robot = Robot(50, 50, 0.0, 100)
    draw_laser(robot, rgb)
    assert tuple(rgb.data[50, 90]) == (0, 255, 0)
    assert tuple(rgb.data[50, int(robot.xg)]) == (0, 255, 0)
    assert tuple(rgb.data[50, 60]) == (0, 0, 0)
    painted_rows = np.nonzero((rgb.data != 0).any(axis=2).any(axis=1))[0]
    assert set(painted_rows.tolist()) == {49, 50, 51}


def test_draw_laser_follows_turret_angle():
    rgb = Image.blank(ImageType.RGB, 100, 100)
    robot = Robot(50, 30, 0.0, 100)
    robot.alpha = math.pi / 2
    robot.calculate_outputs()
    draw_laser(robot, rgb)
    painted_cols = np.nonzero((rgb.data != 0).any(axis=2).any(axis=0))[0]
    centre = int(robot.xg)
    assert set(painted_cols.tolist()) == {centre - 1, centre, centre + 1}


def test_rotate_by_zero_keeps_interior():
    rng = np.random.default_rng(3)
    image = Image.blank(ImageType.RGB, 20, 16)
    image.data[:, :] = rng.integers(1, 256, size=(16, 20, 3), dtype=np.uint8)
    background = Image.blank(ImageType.RGB, 40, 40)
    result = rotate(image, background, 0.0, 0, 0)
    assert (result.width, result.height) == (20, 16)
    assert np.array_equal(result.data[4:13, 4:17], image.data[4:13, 4:17])
    assert not result.data[0:4].any()
    assert not result.data[:, 0:4].any()


def test_rotate_fills_black_with_background():
    image = _filled(20, 20, (10, 20, 30))
    image.data[10, 10] = (0, 0, 0)
    background = _filled(40, 40, (70, 80, 90))
    result = rotate(image, background, 0.0, 5, 5)
    assert tuple(result.data[10, 10]) == (70, 80, 90)
    assert tuple(result.data[9, 9]) == (10, 20, 30)


def test_rotate_black_sprite_stays_transparent():
    image = Image.blank(ImageType.RGB, 20, 20)
    background = _filled(40, 40, (70, 80, 90))
    result = rotate(image, background, 0.7, 0, 0)
    assert not result.data.any()


def test_rotate_does_not_change_input():
    image = _filled(20, 20, (10, 20, 30))
    before = image.data.copy()
    rotate(image, _filled(30, 30, (1, 1, 1)), 1.0, 0, 0)
    assert np.array_equal(image.data, before)


def test_rotate_rejects_grey():
    with pytest.raises(ImageError):
        rotate(Image.blank(ImageType.GREY, 10, 10), _filled(10, 10, (1, 1, 1)), 0.0, 0, 0)