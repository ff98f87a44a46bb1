"""Marker tracking on simulated arena images.

A frame is turned into a mask of dark objects and a mask of the coloured
markers carried by the robots. The objects in the combined mask are labelled
and measured, and the markers are recognised by their average colour.
"""

from __future__ import annotations

import argparse
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .image import Image, ImageError, ImageType, save_rgb_image
from .robot_system import PI, Obstacle
from .simulation import DEFAULT_SHARED_NAME, Simulation, SimulationMode
from .vision import (
    centroid,
    copy,
    dilate,
    draw_point_rgb,
    erode,
    invert,
    label_image,
    lowpass_filter,
    scale,
    threshold,
)

DARK_THRESHOLD = 70  # grey levels below this count as dark
MIN_OBJECT_AREA = 2000  # dark objects smaller than this are dropped (pixels)
MAX_MARKER_AREA = 1000  # objects larger than this are not markers (pixels)
CENTROID_COLOUR = (255, 0, 255)  # r, g, b of the centroid marks


@dataclass
class Item:
    """A labelled object: its centroid, area and average colour."""

    label: int
    ic: int
    jc: int
    area: int
    r: float
    g: float
    b: float


@dataclass
class MarkerPositions:
    """Pixel positions (i, j) of the four robot markers; None when not seen."""

    green: tuple[int, int] | None = None
    red: tuple[int, int] | None = None
    orange: tuple[int, int] | None = None
    blue: tuple[int, int] | None = None


def _is_green(r, g, b):
    return (r < 100) & (g > 170) & (b < 150)


def _is_red(r, g, b):
    return (r > 200) & (g < 110) & (b < 100)


def _is_orange(r, g, b):
    return (r > 200) & (g > 100) & (b < 150)


def _is_blue(r, g, b):
    return (r < 80) & (g < 170) & (b > 200)


def _require(image: Image, operation: str, image_type: ImageType) -> None:
    if image.image_type is not image_type:
        raise ImageError(
            f"{operation}: input type must be {image_type.name}, "
            f"got {image.image_type.name}"
        )


def features(grey: Image, rgb: Image, label: Image, n_labels: int) -> list[Item]:
    """Measure the objects 1..n_labels of a label image.

    The centroid is weighted by ``grey``; the average colour is taken from
    ``rgb``. An object without pixels gets zero centroid, area and colour.
    """
    _require(grey, "features", ImageType.GREY)
    _require(rgb, "features", ImageType.RGB)
    _require(label, "features", ImageType.LABEL)
    if not (grey.same_size(rgb) and grey.same_size(label)):
        raise ImageError("features: sizes of grey, rgb, label are not the same")
    if n_labels < 0:
        raise ValueError(f"number of labels must not be negative: {n_labels}")

    labels = label.data.astype(np.int64).reshape(-1)
    valid = (labels > 0) & (labels <= n_labels)
    ids = labels[valid]
    pixels = rgb.data.reshape(-1, 3)[valid].astype(np.float64)
    size = n_labels + 1
    count = np.bincount(ids, minlength=size)
    sum_b = np.bincount(ids, weights=pixels[:, 0], minlength=size)
    sum_g = np.bincount(ids, weights=pixels[:, 1], minlength=size)
    sum_r = np.bincount(ids, weights=pixels[:, 2], minlength=size)

    items = []
    for number in range(1, size):
        n = int(count[number])
        if n > 0:
            ic, jc = centroid(grey, label, number)
            items.append(
                Item(
                    number,
                    int(ic),
                    int(jc),
                    n,
                    float(sum_r[number] / n),
                    float(sum_g[number] / n),
                    float(sum_b[number] / n),
                )
            )
        else:
            items.append(Item(number, 0, 0, 0, 0.0, 0.0, 0.0))
    return items


def build_black_mask(rgb: Image) -> Image:
    """Mask of the dark objects of a colour image (255 on dark objects)."""
    _require(rgb, "build_black_mask", ImageType.RGB)
    grey = copy(rgb, ImageType.GREY)
    grey = scale(grey)
    grey = lowpass_filter(grey)
    grey = threshold(grey, DARK_THRESHOLD)
    grey = invert(grey)
    grey = erode(grey)
    grey = erode(grey)
    return dilate(grey)


def remove_small_areas(
    grey: Image, label: Image, area: Mapping[int, float], min_area: float
) -> tuple[Image, Image]:
    """Clear the pixels of objects whose area is below ``min_area``.

    ``area`` maps label numbers to areas; a label it lacks counts as area 0.
    Returns new grey and label images with those pixels set to 0.
    """
    _require(grey, "remove_small_areas", ImageType.GREY)
    _require(label, "remove_small_areas", ImageType.LABEL)
    if not grey.same_size(label):
        raise ImageError("remove_small_areas: sizes of grey, label are not the same")
    top = int(label.data.max())
    small = np.array(
        [area.get(number, 0.0) < min_area for number in range(top + 1)], dtype=bool
    )
    remove = small[label.data.astype(np.int64)]
    new_grey = grey.clone()
    new_label = label.clone()
    new_grey.data[remove] = 0
    new_label.data[remove] = 0
    return new_grey, new_label


def build_color_mask(rgb: Image) -> Image:
    """Mask of the marker colours (orange, blue, red, green), closed by morphology."""
    _require(rgb, "build_color_mask", ImageType.RGB)
    channels = rgb.data.astype(np.int64)
    b, g, r = channels[..., 0], channels[..., 1], channels[..., 2]
    marker = _is_orange(r, g, b) | _is_blue(r, g, b) | _is_red(r, g, b) | _is_green(r, g, b)
    mask = Image(
        ImageType.GREY, rgb.width, rgb.height, np.where(marker, 255, 0).astype(np.uint8)
    )
    for _ in range(3):
        mask = dilate(mask)
    for _ in range(3):
        mask = erode(mask)
    return mask


def combine_masks(color_mask: Image, black_mask: Image) -> Image:
    """Union of two binary masks: 255 where either mask is 255, else 0."""
    _require(color_mask, "combine_masks", ImageType.GREY)
    _require(black_mask, "combine_masks", ImageType.GREY)
    if not color_mask.same_size(black_mask):
        raise ImageError("combine_masks: sizes of the masks are not the same")
    union = (color_mask.data == 255) | (black_mask.data == 255)
    return Image(
        ImageType.GREY,
        color_mask.width,
        color_mask.height,
        np.where(union, 255, 0).astype(np.uint8),
    )


def set_robot_centroids(items: Sequence[Item]) -> MarkerPositions:
    """Recognise the markers among small objects by their average colour.

    When several objects match one colour the last one wins.
    """
    positions = MarkerPositions()
    for item in items:
        if item.area > MAX_MARKER_AREA:
            continue
        where = (item.ic, item.jc)
        if _is_green(item.r, item.g, item.b):
            positions.green = where
        elif _is_red(item.r, item.g, item.b):
            positions.red = where
        elif _is_orange(item.r, item.g, item.b):
            positions.orange = where
        elif _is_blue(item.r, item.g, item.b):
            positions.blue = where
    return positions


def process_frame(original: Image) -> tuple[Image, list[Item], MarkerPositions]:
    """Find the objects and markers of a frame.

    Returns a copy of the frame with every object centroid marked, the
    objects found and the marker positions.
    """
    _require(original, "process_frame", ImageType.RGB)
    black_mask = build_black_mask(original)
    label = label_image(black_mask)
    items = features(black_mask, original, label, label.nlabels)
    black_mask, _ = remove_small_areas(
        black_mask, label, {item.label: item.area for item in items}, MIN_OBJECT_AREA
    )

    color_mask = build_color_mask(original)
    mask = combine_masks(color_mask, black_mask)
    label = label_image(mask)
    items = features(mask, original, label, label.nlabels)
    markers = set_robot_centroids(items)

    annotated = original.clone()
    r, g, b = CENTROID_COLOUR
    for item in items:
        draw_point_rgb(annotated, item.ic, item.jc, r, g, b)
    return annotated, items, markers


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="robovision", description="Track robot markers in the simulated arena."
    )
    parser.add_argument("--robot", default="robot_A.bmp", help="robot bitmap")
    parser.add_argument("--opponent", default="robot_B.bmp", help="opponent bitmap")
    parser.add_argument("--background", default="background.bmp", help="background bitmap")
    parser.add_argument("--obstacle", default="obstacle.bmp", help="obstacle bitmap")
    parser.add_argument(
        "--frames", type=int, default=0, help="number of frames to process (0: until interrupted)"
    )
    parser.add_argument("--output", type=Path, help="save the last annotated frame here")
    parser.add_argument(
        "--shared-name", default=DEFAULT_SHARED_NAME, help="name of the shared memory block"
    )
    parser.add_argument(
        "--no-shared", action="store_true", help="do not use shared memory"
    )
    args = parser.parse_args(argv)
    if args.frames < 0:
        parser.error("--frames must not be negative")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    """Run the simulation and track the robot markers in every frame."""
    args = _parse_args(argv)
    obstacles = [Obstacle(270.0, 270.0, 1.0), Obstacle(135.0, 135.0, 1.0)]

    pw_l, pw_r, pw_laser, laser = 1250, 2000, 1500, 0
    max_speed = opponent_max_speed = 100.0
    light = light_gradient = light_dir = image_noise = 1.0
    pw_l_o, pw_r_o, pw_laser_o, laser_o = 1300, 1600, 1500, 0

    with Simulation(
        640,
        480,
        obstacles,
        args.robot,
        args.opponent,
        args.background,
        args.obstacle,
        d=121.0,
        lx=31.0,
        ly=0.0,
        ax=37.0,
        ay=0.0,
        alpha_max=PI / 2,
        n_robot=2,
        shared_name=None if args.no_shared else args.shared_name,
    ) as simulation:
        simulation.set_mode(SimulationMode.SINGLE, 1)
        simulation.set_robot_position(470.0, 170.0, 0.0)
        simulation.set_opponent_position(150.0, 375.0, PI / 4)
        simulation.set_inputs(
            pw_l, pw_r, pw_laser, laser,
            light, light_gradient, light_dir, image_noise,
            max_speed, opponent_max_speed,
        )
        simulation.set_opponent_inputs(pw_l_o, pw_r_o, pw_laser_o, laser_o, opponent_max_speed)

        processed = 0
        annotated = None
        try:
            while args.frames == 0 or processed < args.frames:
                original = simulation.acquire_image()
                annotated, _, _ = process_frame(original)
                processed += 1
                simulation.set_inputs(
                    pw_l, pw_r, pw_laser, laser,
                    light, light_gradient, light_dir, image_noise,
                    max_speed, opponent_max_speed,
                )
                simulation.set_opponent_inputs(
                    pw_l_o, pw_r_o, pw_laser_o, laser_o, opponent_max_speed
                )
                time.sleep(0.01)
        except KeyboardInterrupt:
            pass

    if args.output is not None and annotated is not None:
        save_rgb_image(args.output, annotated)
    print("done.")
    return 0