import io
import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence

import numpy as np
from PIL import Image

from imagegrid.decoder import DecodedImage
from imagegrid.errors import EmptyInput

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255, 255)
MAX_COLUMNS = 3


class GridShape(NamedTuple):
    columns: int
    rows: int


def plan(count: int) -> GridShape:
    """
    Pick the grid shape for ``count`` images.

    Small sets get a square layout (1x1, then 2x2 up to four images); anything
    larger is three columns wide with as many rows as needed. ``plan(0)`` is the
    degenerate (0, 0); callers reject empty input before getting here.
    """
    if count < 0:
        raise ValueError(f"image count must be >= 0, got {count}")
    if count == 0:
        return GridShape(0, 0)
    if count == 1:
        return GridShape(1, 1)
    if count <= 4:
        return GridShape(2, 2)
    return GridShape(MAX_COLUMNS, math.ceil(count / MAX_COLUMNS))


def cell_offset(index: int, shape: GridShape, tile_width: int, tile_height: int):
    """Top-left pixel of cell ``index``, filling rows left to right."""
    col = index % shape.columns
    row = index // shape.columns
    return col * tile_width, row * tile_height


@dataclass
class Canvas:
    shape: GridShape
    tile_width: int
    tile_height: int
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self):
        return self.width, self.height

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def to_jpeg(self, quality: int = 90) -> bytes:
        # JPEG has no alpha; the canvas is opaque so dropping it loses nothing
        buf = io.BytesIO()
        self.to_image().convert("RGB").save(buf, format="JPEG", quality=quality)
        return buf.getvalue()


def _overlay(dst: np.ndarray, src: np.ndarray, x: int, y: int) -> None:
    """Straight-alpha "over" of ``src`` onto ``dst`` at (x, y), in place."""
    h, w = src.shape[:2]
    region = dst[y:y + h, x:x + w]

    src_a = src[..., 3:4]
    if np.all(src_a == 255):
        region[...] = src
        return

    a = src_a.astype(np.float32) / 255.0
    dst_a = region[..., 3:4].astype(np.float32) / 255.0
    out_a = a + dst_a * (1.0 - a)

    rgb = src[..., :3] * a + region[..., :3] * dst_a * (1.0 - a)
    rgb = np.divide(rgb, out_a, out=np.zeros_like(rgb), where=out_a > 0)

    region[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    region[..., 3:4] = np.clip(np.rint(out_a * 255.0), 0, 255).astype(np.uint8)


def composite(images: Sequence[DecodedImage]) -> Canvas:
    """
    Lay ``images`` out on a white canvas.

    Every cell is as large as the widest and tallest image in the set. Images
    keep their native size and sit in the top-left corner of their cell, so
    smaller ones leave white padding to the right and below. Trailing cells of
    the last row stay white.

    Raises:
        EmptyInput: ``images`` is empty.
    """
    if not images:
        raise EmptyInput()

    tile_width = max(img.width for img in images)
    tile_height = max(img.height for img in images)
    shape = plan(len(images))

    pixels = np.empty((shape.rows * tile_height, shape.columns * tile_width, 4), dtype=np.uint8)
    pixels[...] = WHITE

    for idx, img in enumerate(images):
        x, y = cell_offset(idx, shape, tile_width, tile_height)
        _overlay(pixels, img.pixels, x, y)

    logger.info(
        f"Composited {len(images)} images into {shape.columns}x{shape.rows} grid, "
        f"canvas {pixels.shape[1]}x{pixels.shape[0]}"
    )
    return Canvas(shape=shape, tile_width=tile_width, tile_height=tile_height, pixels=pixels)
