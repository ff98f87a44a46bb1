"""Image processing: type conversion, filters, morphology, labelling, drawing.

Every operation returns a new image and leaves its input untouched, except
the ``draw_*`` functions, which paint into the image they are given.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from .image import Image, ImageError, ImageType

LOWPASS_KERNEL = (1, 1, 1, 1, 1, 1, 1, 1, 1)
HIGHPASS_KERNEL = (-1, -1, -1, -1, 9, -1, -1, -1, -1)
GAUSSIAN_KERNEL = (1, 2, 1, 2, 4, 2, 1, 2, 1)

MAX_LABELS = 65533
_LABEL_TABLE_SIZE = 65535
POINT_HALF_WIDTH = 2


def _require(image: Image, operation: str, *types: ImageType) -> None:
    if image.image_type not in types:
        allowed = " or ".join(kind.name for kind in types)
        raise ImageError(
            f"{operation}: input type must be {allowed}, got {image.image_type.name}"
        )


def _from_array(image_type: ImageType, data: np.ndarray, nlabels: int = 0) -> Image:
    height, width = data.shape[:2]
    return Image(image_type, width, height, data, nlabels)


def copy(a: Image, image_type: ImageType | int) -> Image:
    """Return a copy of ``a`` as an image of ``image_type`` (RGB or GREY)."""
    try:
        target = ImageType(image_type)
    except ValueError as exc:
        raise ImageError(f"copy: invalid image type {image_type!r}") from exc
    source = a.image_type
    if source is target and target in (ImageType.RGB, ImageType.GREY):
        return a.clone()
    if source is ImageType.RGB and target is ImageType.GREY:
        channels = a.data.astype(np.float64)
        blue, green, red = channels[..., 0], channels[..., 1], channels[..., 2]
        grey = np.floor(0.299 * red + 0.587 * green + 0.114 * blue)
        return _from_array(ImageType.GREY, grey.astype(np.uint8))
    if source is ImageType.GREY and target is ImageType.RGB:
        return _from_array(ImageType.RGB, np.repeat(a.data[..., np.newaxis], 3, axis=2))
    raise ImageError(f"copy: invalid types {source.name} -> {target.name}")


def invert(a: Image) -> Image:
    """Return the negative of a greyscale image."""
    _require(a, "invert", ImageType.GREY)
    return _from_array(ImageType.GREY, (255 - a.data).astype(np.uint8))


def scale(a: Image) -> Image:
    """Stretch the intensities of an RGB or greyscale image to 0-255."""
    _require(a, "scale", ImageType.RGB, ImageType.GREY)
    low = int(a.data.min())
    high = int(a.data.max())
    if high == low:
        raise ImageError("scale: image intensity is uniform")
    scaled = np.floor(255.0 * (a.data.astype(np.float64) - low) / (high - low))
    return _from_array(a.image_type, scaled.astype(np.uint8))


def convolution(a: Image, kernel: Sequence[int] | Sequence[Sequence[int]], s: float) -> Image:
    """Apply a 3 x 3 convolution to a greyscale image.

    ``kernel`` holds k1..k9 (flat or as three rows); k1..k3 weigh the row
    below the pixel, k4..k6 its own row and k7..k9 the row above, each from
    left to right. The weighted sum is multiplied by ``s``, truncated and
    clipped to 0-255; the border repeats the nearest computed pixel.
    """
    _require(a, "convolution", ImageType.GREY)
    weights = np.asarray(kernel, dtype=np.int64).reshape(-1)
    if weights.size != 9:
        raise ValueError(f"convolution kernel needs 9 values, got {weights.size}")
    width, height = a.width, a.height
    if width < 3 or height < 3:
        raise ImageError(f"convolution: image too small ({width} x {height})")
    source = a.data.astype(np.int64)
    total = np.zeros((height - 2, width - 2), dtype=np.int64)
    for row in range(3):
        for col in range(3):
            weight = weights[row * 3 + col]
            if weight:
                total += weight * source[row:row + height - 2, col:col + width - 2]
    interior = np.clip(np.trunc(s * total), 0, 255).astype(np.uint8)
    return _from_array(ImageType.GREY, np.pad(interior, 1, mode="edge"))


def lowpass_filter(a: Image) -> Image:
    """3 x 3 averaging filter."""
    return convolution(a, LOWPASS_KERNEL, 1.0 / 9)


def highpass_filter(a: Image) -> Image:
    """3 x 3 sharpening filter."""
    return convolution(a, HIGHPASS_KERNEL, 1.0)


def gaussian_filter(a: Image) -> Image:
    """3 x 3 Gaussian smoothing filter."""
    return convolution(a, GAUSSIAN_KERNEL, 1.0 / 16)


def threshold(a: Image, tvalue: int) -> Image:
    """Binary threshold: pixels below ``tvalue`` become 0, the rest 255."""
    _require(a, "threshold", ImageType.GREY)
    binary = np.where(a.data < tvalue, 0, 255).astype(np.uint8)
    return _from_array(ImageType.GREY, binary)


def histogram(a: Image, nhist: int) -> tuple[np.ndarray, float, float]:
    """Histogram of the first ``width * height`` bytes of pixel data.

    Returns the ``nhist`` bin counts and the minimum and maximum byte value.
    """
    if nhist <= 0:
        raise ValueError(f"number of histogram bins must be positive: {nhist}")
    raw = np.ascontiguousarray(a.data).view(np.uint8).reshape(-1)[: a.pixel_count]
    low = int(raw.min())
    high = int(raw.max())
    dmin = low - 1.0e-6
    dmax = high + 1.0e-6
    dn = (dmax - dmin) / nhist
    hist = np.zeros(nhist, dtype=np.float64)
    values, counts = np.unique(raw, return_counts=True)
    for value, count in zip(values.tolist(), counts.tolist()):
        r = float(value)
        for j in range(nhist):
            x1 = dmin + j * dn
            x2 = x1 + dn
            if x1 <= r < x2:
                hist[j] += count
                break
    return hist, float(low), float(high)


def _interior_neighbours(data: np.ndarray) -> tuple[np.ndarray, ...]:
    height, width = data.shape
    centre = data[1:height - 1, 1:width - 1]
    below = data[0:height - 2, 1:width - 1]
    above = data[2:height, 1:width - 1]
    left = data[1:height - 1, 0:width - 2]
    right = data[1:height - 1, 2:width]
    return centre, right, below, left, above


def dilate(a: Image) -> Image:
    """Four-neighbourhood greyscale dilation; the border is set to 0."""
    _require(a, "dilate", ImageType.GREY)
    result = np.zeros_like(a.data)
    if a.width > 2 and a.height > 2:
        result[1:-1, 1:-1] = np.maximum.reduce(_interior_neighbours(a.data))
    return _from_array(ImageType.GREY, result)


def dilate_fast(a: Image) -> Image:
    """Approximate dilation that spreads every non-zero pixel to its four neighbours.

    Where neighbours compete, the pixel above wins over the one to the right,
    then the left, then the one below. The top and bottom rows do not spread;
    the border is set to 0.
    """
    _require(a, "dilate_fast", ImageType.GREY)
    result = np.zeros_like(a.data)
    if a.width > 2 and a.height > 2:
        spreading = a.data.copy()
        spreading[0, :] = 0
        spreading[-1, :] = 0
        region = a.data[1:-1, 1:-1].copy()
        _, right, below, left, above = _interior_neighbours(spreading)
        for source in (below, left, right, above):
            region = np.where(source > 0, source, region)
        result[1:-1, 1:-1] = region
    return _from_array(ImageType.GREY, result)


def erode(a: Image) -> Image:
    """Four-neighbourhood greyscale erosion; the border is set to 0."""
    _require(a, "erode", ImageType.GREY)
    result = np.zeros_like(a.data)
    if a.width > 2 and a.height > 2:
        result[1:-1, 1:-1] = np.minimum.reduce(_interior_neighbours(a.data))
    return _from_array(ImageType.GREY, result)


def label_image(a: Image) -> Image:
    """Label the 4-connected non-zero objects of a binary greyscale image.

    Returns a LABEL image whose pixels hold 0 for background or 1..nlabels,
    numbered in scan order from the bottom row up; ``nlabels`` is set on it.
    The first row and the first pixel of the second row count as background,
    and the border of the result is 0.
    """
    _require(a, "label_image", ImageType.GREY)
    width, height = a.width, a.height
    size = width * height

    binary = a.data.reshape(-1).copy()
    binary[: width + 1] = 0
    pixels = binary.tolist()
    grid = [0] * size
    parent = list(range(_LABEL_TABLE_SIZE))

    start = width + 1
    end = width * (height - 1) - 1
    candidates = (np.flatnonzero(binary[start:end]) + start).tolist() if end > start else []

    nlabel = 0
    for k in candidates:
        below = pixels[k - width]
        left = pixels[k - 1]
        if below and left:
            i = grid[k - 1]
            j = grid[k - width]
            grid[k] = i
            root_i, root_j = parent[i], parent[j]
            if root_i < root_j:
                parent[root_j] = root_i
                parent[j] = root_i
            elif root_j < root_i:
                parent[root_i] = root_j
                parent[i] = root_j
        elif below:
            grid[k] = grid[k - width]
        elif left:
            grid[k] = grid[k - 1]
        elif pixels[k - width + 1] and pixels[k + 1]:
            grid[k] = grid[k - width + 1]
        else:
            nlabel += 1
            grid[k] = nlabel
            if nlabel > MAX_LABELS:
                break

    for k in range(nlabel, 0, -1):
        while parent[parent[k]] != parent[k]:
            parent[k] = parent[parent[k]]

    renumber = [0] * (nlabel + 1)
    objects = 0
    for k in range(1, nlabel + 1):
        root = parent[k]
        if renumber[root] == 0:
            objects += 1
            renumber[root] = objects

    lookup = np.array([renumber[parent[k]] for k in range(nlabel + 1)], dtype=np.uint16)
    labels = lookup[np.array(grid, dtype=np.int64)].reshape(height, width)
    labels[:, 0] = 0
    labels[:, -1] = 0
    labels[0, :] = 0
    labels[-1, :] = 0
    return _from_array(ImageType.LABEL, labels, objects)


def centroid(a: Image, label: Image, nlabel: int) -> tuple[float, float]:
    """Intensity-weighted centroid ``(ic, jc)`` of object ``nlabel``.

    ``ic`` is the column (rightwards) and ``jc`` the row (upwards, row 0 at
    the bottom).
    """
    if not a.same_size(label):
        raise ImageError("centroid: sizes of a, label are not the same")
    _require(a, "centroid", ImageType.GREY)
    _require(label, "centroid", ImageType.LABEL)
    rows, cols = np.nonzero(label.data == nlabel)
    rho = a.data[rows, cols].astype(np.float64)
    mass = rho.sum()
    if mass == 0:
        raise ImageError(f"centroid: object {nlabel} has no mass")
    return float((rho * cols).sum() / mass), float((rho * rows).sum() / mass)


def _point_window(image: Image, ip: int, jp: int, half: int) -> tuple[slice, slice]:
    side = 2 * half + 1
    if image.width < side or image.height < side:
        raise ImageError(f"image too small to draw a {side} x {side} point")
    ip = min(max(ip, half), image.width - half - 1)
    jp = min(max(jp, half), image.height - half - 1)
    return slice(jp - half, jp + half + 1), slice(ip - half, ip + half + 1)


def draw_point(a: Image, ip: int, jp: int, value: int) -> None:
    """Paint a 5 x 5 square centred on (ip, jp), kept inside the greyscale image."""
    _require(a, "draw_point", ImageType.GREY)
    rows, cols = _point_window(a, ip, jp, POINT_HALF_WIDTH)
    a.data[rows, cols] = value & 0xFF


def draw_point_rgb(rgb: Image, ip: int, jp: int, r: int, g: int, b: int) -> None:
    """Paint a 5 x 5 square of colour (r, g, b) centred on (ip, jp) in an RGB image."""
    _require(rgb, "draw_point_rgb", ImageType.RGB)
    rows, cols = _point_window(rgb, ip, jp, POINT_HALF_WIDTH)
    rgb.data[rows, cols] = (b & 0xFF, g & 0xFF, r & 0xFF)