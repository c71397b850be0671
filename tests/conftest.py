"""Shared pytest fixtures for the remote display tests."""

import io
import os
import struct
import sys
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from remote_display.config import Config


def make_png(size=(64, 48)) -> bytes:
    """Noisy PNG so the pixel data is large enough to truncate mid-stream."""
    width, height = size
    img = Image.frombytes("RGB", size, os.urandom(width * height * 3))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_png


@pytest.fixture
def config(tmp_path):
    return Config.from_dict({
        "server": {"host": "127.0.0.1", "port": 18080},
        "poller": {"retry_delay_ms": 20},
        "storage": {"address_file": str(tmp_path / "address")},
        "ui": {"title": "Test Display"},
    })


def make_broken_dds() -> bytes:
    """DDS header with pixel format flags no decoder understands."""
    header = struct.pack("<7I", 124, 0x1007, 4, 4, 0, 0, 0) + b"\0" * 44
    pixel_format = struct.pack("<4I", 32, 11, 0, 0) + b"\0" * 16
    return b"DDS " + header + pixel_format + b"\0" * 20 + b"\0" * 64


@pytest.fixture
def broken_dds():
    return make_broken_dds()
