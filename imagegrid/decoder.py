import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
from PIL import Image

from imagegrid.errors import ImageDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedImage:
    """An RGBA pixel buffer, ``pixels.shape == (height, width, 4)``."""

    width: int
    height: int
    pixels: np.ndarray

    @classmethod
    def from_pil(cls, image: Image.Image) -> "DecodedImage":
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        pixels = np.array(image, dtype=np.uint8)
        pixels.setflags(write=False)
        width, height = image.size
        return cls(width=width, height=height, pixels=pixels)


def decode(data: bytes) -> DecodedImage:
    """
    Decode a single image buffer.

    Any format Pillow can read is accepted; grayscale, palette, CMYK and RGB
    inputs all come out as RGBA so later stages never look at the mode.

    Raises:
        ImageDecodeError: the data is empty, malformed or an unsupported format.
    """
    if not data:
        raise ImageDecodeError("empty image data")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            decoded = DecodedImage.from_pil(image)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(e) from e

    if decoded.width == 0 or decoded.height == 0:
        raise ImageDecodeError(f"image has no pixels ({decoded.width}x{decoded.height})")
    return decoded


def decode_all(buffers: Sequence[bytes], max_workers: Optional[int] = None) -> List[DecodedImage]:
    """
    Decode every buffer on a thread pool, keeping input order.

    Pillow releases the GIL while decoding, so threads give real parallelism
    here. The first buffer that fails (in input order) aborts the call.
    """
    if len(buffers) <= 1:
        return [decode(data) for data in buffers]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        try:
            images = list(pool.map(decode, buffers))
        except ImageDecodeError:
            # drop decodes that have not started yet
            pool.shutdown(wait=False, cancel_futures=True)
            raise

    logger.debug(f"Decoded {len(images)} images: {[(i.width, i.height) for i in images]}")
    return images
