"""
Frame decoding using Pillow.
A frame is only ever built from a completely transferred, fully decoded image.
"""

import io
from dataclasses import dataclass, field
from typing import Tuple

from PIL import Image

from .errors import DecodeError


@dataclass(frozen=True, eq=False)
class Frame:
    """
    A fully decoded remote screen image.

    The original encoded bytes are kept so the viewer can hand them to the
    browser unchanged; the decoded pixels are not retained.
    """

    data: bytes = field(repr=False)
    format: str
    width: int
    height: int
    arrival: float = 0.0

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def content_type(self) -> str:
        return Image.MIME.get(self.format, "application/octet-stream")


def decode_frame(data: bytes, url: str = "", arrival: float = 0.0) -> Frame:
    """
    Decode image bytes into a Frame.

    ``Image.open`` only reads the header, so ``load()`` is forced to make
    truncated or corrupt pixel data fail here instead of at display time.

    Raises:
        DecodeError: if the bytes are empty, not an image, or incomplete.
    """
    if not data:
        raise DecodeError(url, "empty response body")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            fmt = img.format or "PNG"
            width, height = img.size
    except Exception as e:
        # Plugins raise anything from OSError to NotImplementedError on bad data
        raise DecodeError(url, str(e) or type(e).__name__) from e

    return Frame(data=data, format=fmt, width=width, height=height, arrival=arrival)
