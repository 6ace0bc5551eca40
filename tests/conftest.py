import io

import pytest
from PIL import Image


def make_image_bytes(width, height, color=(255, 0, 0, 255), mode="RGBA", fmt="PNG"):
    image = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png():
    return make_image_bytes
