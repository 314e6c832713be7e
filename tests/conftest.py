# tests/conftest.py
"""
Fixture factories that build small images carrying known metadata payloads.
Every payload contains MARKER so tests can grep the stripped bytes for it.
"""
from __future__ import annotations

import os
import stat
import struct
from pathlib import Path

import pytest
from PIL import Image, PngImagePlugin, features

from upload_scrubber.capabilities import Capabilities
from upload_scrubber.dispatcher import Dispatcher

MARKER = b"SCRUB-MARKER"
WEBP = bool(features.check("webp"))

requires_webp = pytest.mark.skipif(not WEBP, reason="Pillow built without WebP")
requires_posix = pytest.mark.skipif(os.name != "posix", reason="fake tool is a shell script")


def _exif_bytes(tag: str) -> bytes:
    exif = Image.Exif()
    exif[0x013B] = (MARKER + tag.encode()).decode()  # Artist
    exif[0x010F] = "ScrubCam"  # Make
    return exif.tobytes()


def _segment(marker: int, payload: bytes) -> bytes:
    return bytes([0xFF, marker]) + struct.pack(">H", len(payload) + 2) + payload


def _xmp_segment() -> bytes:
    payload = (
        b"http://ns.adobe.com/xap/1.0/\x00"
        b'<x:xmpmeta xmlns:x="adobe:ns:meta/">' + MARKER + b"-XMP</x:xmpmeta>"
    )
    return _segment(0xE1, payload)


def _iptc_segment() -> bytes:
    value = MARKER + b"-IPTC"
    record = b"\x1c\x02\x50" + struct.pack(">H", len(value)) + value  # By-line
    if len(record) % 2:
        record += b"\x00"
    resource = b"8BIM" + b"\x04\x04" + b"\x00\x00" + struct.pack(">I", len(record)) + record
    return _segment(0xED, b"Photoshop 3.0\x00" + resource)


@pytest.fixture
def caps() -> Capabilities:
    return Capabilities(webp=WEBP, can_exec=False)


@pytest.fixture
def dispatcher(caps) -> Dispatcher:
    return Dispatcher(capabilities=caps)


@pytest.fixture
def make_jpeg(tmp_path: Path):
    """JPEG with EXIF, XMP, IPTC and a COM segment."""
    def _make(name: str = "photo.jpg", size=(64, 48)) -> Path:
        path = tmp_path / name
        Image.effect_noise(size, 64).convert("RGB").save(
            path, "JPEG", quality=95, exif=_exif_bytes("-EXIF"), comment=MARKER + b"-COM"
        )
        data = path.read_bytes()
        path.write_bytes(data[:2] + _xmp_segment() + _iptc_segment() + data[2:])
        return path
    return _make


@pytest.fixture
def make_png(tmp_path: Path):
    """RGBA PNG with a semi-transparent block plus tEXt, iTXt, zTXt and eXIf chunks."""
    def _make(name: str = "logo.png", size=(40, 30)) -> Path:
        path = tmp_path / name
        im = Image.new("RGBA", size, (10, 120, 200, 255))
        im.paste((250, 10, 10, 96), (5, 5, 25, 20))
        info = PngImagePlugin.PngInfo()
        info.add_text("Comment", (MARKER + b"-TEXT").decode())
        info.add_itxt("XML:com.adobe.xmp", (MARKER + b"-XMP").decode())
        info.add_text("Software", (MARKER + b"-ZTXT").decode(), zip=True)
        im.save(path, "PNG", pnginfo=info, exif=_exif_bytes("-EXIF"))
        return path
    return _make


@pytest.fixture
def make_gif(tmp_path: Path):
    """Three-frame looping GIF with a comment extension."""
    def _make(name: str = "anim.gif", size=(24, 24)) -> Path:
        path = tmp_path / name
        frames = [Image.new("RGB", size, c) for c in ((255, 0, 0), (0, 255, 0), (0, 0, 255))]
        frames[0].save(
            path, "GIF", save_all=True, append_images=frames[1:],
            duration=120, loop=0, comment=MARKER + b"-GIF",
        )
        return path
    return _make


@pytest.fixture
def make_webp(tmp_path: Path):
    def _make(name: str = "hero.webp", size=(32, 32)) -> Path:
        path = tmp_path / name
        im = Image.new("RGBA", size, (0, 200, 0, 255))
        im.paste((0, 0, 255, 128), (0, 0, 16, 16))
        im.save(path, "WEBP", quality=90, exif=_exif_bytes("-EXIF"))
        return path
    return _make


@pytest.fixture
def make_bmp(tmp_path: Path):
    def _make(name: str = "scan.bmp", size=(20, 10)) -> Path:
        path = tmp_path / name
        Image.new("RGB", size, (40, 50, 60)).save(path, "BMP")
        return path
    return _make


@pytest.fixture
def fake_tool(tmp_path: Path):
    """
    Write an executable shell script standing in for ImageMagick. It is
    called as: tool CODER:<in> -strip CODER:<out>
    """
    def _make(body: str, name: str = "fake-magick") -> Path:
        script = tmp_path / "bin" / name
        script.parent.mkdir(exist_ok=True)
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script
    return _make


def image_files(directory: Path):
    return sorted(p.name for p in directory.iterdir() if p.is_file())
