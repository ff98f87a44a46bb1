"""Rendering of the simulated scene: sprite rotation, compositing and lasers."""

from __future__ import annotations

import math

import numpy as np

from .image import Image, ImageError, ImageType
from .robot import Robot

LASER_COLOUR = (0, 255, 0)  # r, g, b
LASER_RANGE = 5000  # maximum laser length (pixels)
LASER_MARGIN = 3  # the laser stops this close to the image border
LASER_POINT_HALF_WIDTH = 1
_ROTATE_MARGIN = 3


def _require_rgb(image: Image, operation: str) -> None:
    if image.image_type is not ImageType.RGB:
        raise ImageError(
            f"{operation}: input type must be RGB, got {image.image_type.name}"
        )


def rotate(image: Image, background: Image, theta: float, ig: int, jg: int) -> Image:
    """Rotate an RGB sprite by ``theta`` (rad) about its centre.

    The result has the size of ``image``. Pixels are found by bilinear
    interpolation; black (transparent) sample points are replaced by the
    ``background`` pixel beneath the output pixel, where the sprite's lower
    left corner sits at (ig, jg) on the background. Pixels that come out
    black stay transparent.
    """
    _require_rgb(image, "rotate")
    _require_rgb(background, "rotate")
    width, height = image.width, image.height
    width_c, height_c = background.width, background.height

    source = image.data.astype(np.int64)
    back = background.data
    result = Image.blank(ImageType.RGB, width, height)

    cos_th = math.cos(theta)
    sin_th = math.sin(theta)
    rows, cols = np.mgrid[0:height, 0:width]
    ic = cols - 0.5 * width
    jc = rows - 0.5 * height
    ip = cos_th * ic + sin_th * jc + 0.5 * width
    jp = -sin_th * ic + cos_th * jc + 0.5 * height
    i1 = np.trunc(ip).astype(np.int64)
    j1 = np.trunc(jp).astype(np.int64)

    inside = (
        (i1 > _ROTATE_MARGIN)
        & (i1 < width - _ROTATE_MARGIN)
        & (j1 > _ROTATE_MARGIN)
        & (j1 < height - _ROTATE_MARGIN)
    )
    si1 = np.where(inside, i1, 0)
    sj1 = np.where(inside, j1, 0)
    corners = (
        source[sj1, si1],
        source[sj1, si1 + 1],
        source[sj1 + 1, si1],
        source[sj1 + 1, si1 + 1],
    )
    total = sum(corner.sum(axis=2) for corner in corners)
    candidates = inside & (total > 0)

    out = result.data
    for j, i in zip(*np.nonzero(candidates)):
        j = int(j)
        i = int(i)
        # the clamped offsets carry over to later pixels
        if i + ig < 0:
            ig = -i
        if i + ig >= width_c:
            ig = width_c - i - 1
        if j + jg < 0:
            jg = -j
        if j + jg >= height_c:
            jg = height_c - j - 1

        under = tuple(int(v) for v in back[j + jg, i + ig])
        points = []
        for corner in corners:
            value = tuple(int(v) for v in corner[j, i])
            points.append(under if sum(value) == 0 else value)
        p1, p2, p3, p4 = points

        fx = ip[j, i] - i1[j, i]
        fy = jp[j, i] - j1[j, i]
        pixel = []
        for c in range(3):
            lower = p1[c] + (p2[c] - p1[c]) * fx
            upper = p3[c] + (p4[c] - p3[c]) * fx
            pixel.append(int(lower + (upper - lower) * fy))
        if any(value >= 1 for value in pixel):
            out[j, i] = pixel
    return result


def append(a: Image, b: Image, ip: int, jp: int) -> None:
    """Paint the non-black pixels of ``b`` into ``a`` with b's lower left corner at (ip, jp)."""
    _require_rgb(a, "append")
    _require_rgb(b, "append")
    col0 = max(ip, 0)
    row0 = max(jp, 0)
    col1 = min(ip + b.width, a.width)
    row1 = min(jp + b.height, a.height)
    if col0 >= col1 or row0 >= row1:
        return
    patch = b.data[row0 - jp:row1 - jp, col0 - ip:col1 - ip]
    visible = (patch >= 1).any(axis=2)
    target = a.data[row0:row1, col0:col1]
    target[visible] = patch[visible]


def draw_point_rgb_laser(rgb: Image, ip: int, jp: int, r: int, g: int, b: int) -> None:
    """Paint a 3 x 3 square of colour (r, g, b) centred on (ip, jp), kept inside the image."""
    _require_rgb(rgb, "draw_point_rgb_laser")
    half = LASER_POINT_HALF_WIDTH
    side = 2 * half + 1
    if rgb.width < side or rgb.height < side:
        raise ImageError(f"image too small to draw a {side} x {side} point")
    ip = min(max(ip, half), rgb.width - half - 1)
    jp = min(max(jp, half), rgb.height - half - 1)
    rgb.data[jp - half:jp + half + 1, ip - half:ip + half + 1] = (b & 0xFF, g & 0xFF, r & 0xFF)


def draw_laser(robot: Robot, rgb: Image) -> None:
    """Draw the laser beam of ``robot`` from its turret until it leaves the image."""
    _require_rgb(rgb, "draw_laser")
    r, g, b = LASER_COLOUR
    theta = robot.theta + robot.alpha
    cos_th = math.cos(theta)
    sin_th = math.sin(theta)
    for step in range(LASER_RANGE):
        i = int(robot.xg + step * cos_th)
        j = int(robot.yg + step * sin_th)
        if (
            i < LASER_MARGIN
            or i > rgb.width - LASER_MARGIN
            or j < LASER_MARGIN
            or j > rgb.height - LASER_MARGIN
        ):
            break
        draw_point_rgb_laser(rgb, i, j, r, g, b)