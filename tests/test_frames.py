import io

import pytest
from PIL import Image

from remote_display.errors import DecodeError
from remote_display.frames import decode_frame


def test_decode_valid_png(png_bytes):
    data = png_bytes((20, 10))
    frame = decode_frame(data, "http://10.0.0.5/screen.png", arrival=3.5)

    assert frame.size == (20, 10)
    assert frame.format == "PNG"
    assert frame.content_type == "image/png"
    assert frame.arrival == 3.5
    assert frame.data is data


def test_decode_jpeg():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), "red").save(buffer, format="JPEG")
    frame = decode_frame(buffer.getvalue())
    assert frame.content_type == "image/jpeg"


def test_truncated_png_fails(png_bytes):
    data = png_bytes()
    with pytest.raises(DecodeError) as exc_info:
        decode_frame(data[: len(data) // 2], "http://10.0.0.5/screen.png?t=1")
    assert exc_info.value.url == "http://10.0.0.5/screen.png"


@pytest.mark.parametrize("data", [b"", b"<html>not found</html>"])
def test_non_image_fails(data):
    with pytest.raises(DecodeError):
        decode_frame(data, "http://10.0.0.5/screen.png")


def test_unsupported_pixel_format_fails(broken_dds):
    with pytest.raises(DecodeError) as exc_info:
        decode_frame(broken_dds, "http://10.0.0.5/screen.png?t=1")
    assert exc_info.value.url == "http://10.0.0.5/screen.png"
