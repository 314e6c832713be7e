# upload_scrubber/utils/signature.py
"""
Magic-number checks that decide what an uploaded file really is.
The filename and the client-declared type are never consulted.
"""
from __future__ import annotations

from pathlib import Path

# Enough to see every signature below, including the ISO-BMFF brand.
SNIFF_BYTES = 32

IMAGE_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/tiff",
    "image/x-icon",
    "image/avif",
    "image/heic",
})

_AVIF_BRANDS = {b"avif", b"avis"}
_HEIC_BRANDS = {b"heic", b"heix", b"heim", b"heis", b"hevc", b"hevx", b"mif1", b"msf1"}


def _starts(data: bytes, prefix: bytes) -> bool:
    return data.startswith(prefix)

def _has(data: bytes, offset: int, token: bytes) -> bool:
    return data[offset:offset+len(token)] == token

def _is_jpeg(data: bytes) -> bool:
    return _starts(data, b"\xFF\xD8\xFF")

def _is_png(data: bytes) -> bool:
    return _starts(data, b"\x89PNG\r\n\x1a\n")

def _is_gif(data: bytes) -> bool:
    return _starts(data, b"GIF87a") or _starts(data, b"GIF89a")

def _is_webp(data: bytes) -> bool:
    return len(data) >= 12 and _has(data, 0, b"RIFF") and _has(data, 8, b"WEBP")

def _is_bmp(data: bytes) -> bool:
    # "BM" is short enough to collide with text; require the reserved words to be zero.
    return len(data) >= 14 and _starts(data, b"BM") and data[6:10] == b"\x00\x00\x00\x00"

def _is_tiff(data: bytes) -> bool:
    return _starts(data, b"MM\x00*") or _starts(data, b"II*\x00")

def _is_ico(data: bytes) -> bool:
    return len(data) >= 6 and _starts(data, b"\x00\x00\x01\x00") and data[4:6] != b"\x00\x00"

def _iso_bmff_brand(data: bytes) -> bytes | None:
    if len(data) >= 12 and _has(data, 4, b"ftyp"):
        return data[8:12]
    return None


def detect_mime(data: bytes) -> str | None:
    """Return the image MIME type for the leading bytes, or None if unrecognized."""
    if _is_jpeg(data): return "image/jpeg"
    if _is_png(data):  return "image/png"
    if _is_gif(data):  return "image/gif"
    if _is_webp(data): return "image/webp"
    if _is_tiff(data): return "image/tiff"
    if _is_bmp(data):  return "image/bmp"
    if _is_ico(data):  return "image/x-icon"
    brand = _iso_bmff_brand(data)
    if brand in _AVIF_BRANDS:
        return "image/avif"
    if brand in _HEIC_BRANDS:
        return "image/heic"
    return None


def sniff(path: str | Path) -> str | None:
    """Peek at the file and return its image MIME type. Unreadable files give None."""
    try:
        with open(path, "rb") as fh:
            head = fh.read(SNIFF_BYTES)
    except OSError:
        return None
    return detect_mime(head)


def is_image_mime(mime: str | None) -> bool:
    return mime in IMAGE_MIME_TYPES
