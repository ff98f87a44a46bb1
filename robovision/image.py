"""Image container and 24-bit bitmap loading and saving.

Pixel data is stored bottom-up (row 0 is the bottom row, so the origin is
the lower-left corner) and colour images keep the B, G, R channel order of
24-bit bitmaps.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

MAX_DIMENSION = 65535


class ImageError(Exception):
    """Raised for invalid images or image operations."""


class ImageType(enum.IntEnum):
    """Kinds of image and their pixel layouts."""

    RGB = 1
    GREY = 2
    LABEL = 3

    @property
    def bytes_per_pixel(self) -> int:
        return {ImageType.RGB: 3, ImageType.GREY: 1, ImageType.LABEL: 2}[self]

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(np.uint16) if self is ImageType.LABEL else np.dtype(np.uint8)

    def shape(self, width: int, height: int) -> tuple[int, ...]:
        if self is ImageType.RGB:
            return (height, width, 3)
        return (height, width)


@dataclass
class Image:
    """An image of a given type; ``data[j, i]`` is the pixel at column i, row j."""

    image_type: ImageType
    width: int
    height: int
    data: np.ndarray
    nlabels: int = field(default=0)

    def __post_init__(self) -> None:
        try:
            self.image_type = ImageType(self.image_type)
        except ValueError as exc:
            raise ImageError(f"invalid image type: {self.image_type!r}") from exc
        for name, value in (("width", self.width), ("height", self.height)):
            if not 0 < value <= MAX_DIMENSION:
                raise ImageError(f"image {name} out of range: {value}")
        expected = self.image_type.shape(self.width, self.height)
        if self.data.shape != expected:
            raise ImageError(
                f"data shape {self.data.shape} does not match {expected} "
                f"for a {self.image_type.name} image"
            )
        if self.data.dtype != self.image_type.dtype:
            raise ImageError(
                f"data type {self.data.dtype} does not match "
                f"{self.image_type.dtype} for a {self.image_type.name} image"
            )

    @classmethod
    def blank(cls, image_type: ImageType, width: int, height: int) -> "Image":
        """Create a zero-filled image of the given type and size."""
        try:
            kind = ImageType(image_type)
        except ValueError as exc:
            raise ImageError(f"invalid image type: {image_type!r}") from exc
        if not (0 < width <= MAX_DIMENSION and 0 < height <= MAX_DIMENSION):
            raise ImageError(f"image size out of range: {width} x {height}")
        data = np.zeros(kind.shape(width, height), dtype=kind.dtype)
        return cls(kind, width, height, data)

    @property
    def pixel_count(self) -> int:
        """Number of pixels in the image."""
        return self.width * self.height

    def same_size(self, other: "Image") -> bool:
        """True if both images have the same width and height."""
        return self.width == other.width and self.height == other.height

    def clone(self) -> "Image":
        """Return an independent copy of the image."""
        return Image(self.image_type, self.width, self.height, self.data.copy(), self.nlabels)


def load_rgb_image(path: str | Path) -> Image:
    """Load a colour image file (normally a 24-bit bitmap) as an RGB image."""
    try:
        with PILImage.open(path) as picture:
            rgb = np.asarray(picture.convert("RGB"), dtype=np.uint8)
    except (OSError, UnidentifiedImageError) as exc:
        raise ImageError(f"cannot load image {path}: {exc}") from exc
    height, width = rgb.shape[:2]
    data = np.ascontiguousarray(rgb[::-1, :, ::-1])
    return Image(ImageType.RGB, width, height, data)


def save_rgb_image(path: str | Path, image: Image) -> None:
    """Save an RGB image; the format follows the file suffix, bitmap if none."""
    if image.image_type is not ImageType.RGB:
        raise ImageError("save_rgb_image needs an RGB image")
    rgb = np.ascontiguousarray(image.data[::-1, :, ::-1])
    picture = PILImage.fromarray(rgb, mode="RGB")
    image_format = None if Path(path).suffix else "BMP"
    try:
        picture.save(path, format=image_format)
    except (OSError, ValueError) as exc:
        raise ImageError(f"cannot save image {path}: {exc}") from exc