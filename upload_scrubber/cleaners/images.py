# upload_scrubber/cleaners/images.py
"""
Native image strippers (JPEG, PNG, WebP, GIF).

Each one decodes the file with Pillow and re-encodes it in the same
container. The encoder only writes what it is handed, and every frame is
handed over with its info reduced to structural keys, so EXIF/IPTC/XMP/COM
segments, ICC profiles and tEXt/iTXt/zTXt/eXIf chunks do not survive.

Kept as-is:
- the image mode (no RGBA -> RGB, no P -> RGB), so alpha and palettes stay
- every frame of animated GIF, APNG and WebP, with durations, loop count
  and disposal
"""
from __future__ import annotations

import io
import logging
import struct
from pathlib import Path
from typing import IO, Callable, List, NamedTuple, Union

from PIL import Image, ImageSequence, PngImagePlugin

from upload_scrubber.errors import (
    DecodeFailure,
    EncodeFailure,
    LimitExceeded,
    ScrubError,
    UnsupportedVariant,
)
from upload_scrubber.outcomes import StripStrategy
from upload_scrubber.settings import DEFAULT_OPTIONS, StripOptions
from upload_scrubber.utils.files import check_size, replace_atomic

logger = logging.getLogger(__name__)

FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
}

# Pillow's failure modes for broken input.
DECODE_ERRORS = (
    OSError,
    SyntaxError,
    ValueError,
    EOFError,
    IndexError,
    struct.error,
    Image.DecompressionBombError,
)

_ENCODE_ERRORS = (OSError, ValueError, KeyError, TypeError)

# Everything else in Image.info is metadata.
_STRUCTURAL_KEYS = ("transparency", "duration", "loop", "disposal", "blend", "background", "default_image")

Source = Union[str, Path, IO[bytes]]


def _check_limits(im: Image.Image, options: StripOptions) -> None:
    width, height = im.size
    if width * height > options.max_pixels:
        raise LimitExceeded(f"{width}x{height} exceeds {options.max_pixels} pixels")
    frames = getattr(im, "n_frames", 1)
    if frames > options.max_frames:
        raise LimitExceeded(f"{frames} frames exceeds {options.max_frames}")


def open_image(source: Source, options: StripOptions, formats: List[str] | None = None) -> Image.Image:
    """
    Open an image lazily and enforce the pixel and frame limits before any
    pixel data is decoded. `formats` restricts Pillow to the given decoders;
    None lets it sniff.
    """
    try:
        im = Image.open(source, formats=formats)
    except DECODE_ERRORS as exc:
        raise DecodeFailure(str(exc)) from exc
    try:
        _check_limits(im, options)
    except DECODE_ERRORS as exc:
        im.close()
        raise DecodeFailure(str(exc)) from exc
    except ScrubError:
        im.close()
        raise
    return im


def _detach(frame: Image.Image) -> Image.Image:
    clean = frame.copy()
    clean.info = {k: frame.info[k] for k in _STRUCTURAL_KEYS if k in frame.info}
    # GIF keeps the disposal method on the decoder, not in info.
    if hasattr(frame, "disposal_method"):
        clean.info["disposal"] = frame.disposal_method
    return clean


def read_frames(im: Image.Image, animated: bool = True) -> List[Image.Image]:
    try:
        if not animated or getattr(im, "n_frames", 1) <= 1:
            return [_detach(im)]
        return [_detach(frame) for frame in ImageSequence.Iterator(im)]
    except DECODE_ERRORS as exc:
        raise DecodeFailure(str(exc)) from exc


def _animation_params(mime: str, frames: List[Image.Image]) -> dict:
    first = frames[0]
    params = {
        "save_all": True,
        "append_images": frames[1:],
        "duration": [f.info.get("duration", 0) for f in frames],
    }
    if "loop" in first.info:
        params["loop"] = first.info["loop"]
    if mime in ("image/gif", "image/png") and all("disposal" in f.info for f in frames):
        params["disposal"] = [f.info["disposal"] for f in frames]
    if mime == "image/png":
        if all("blend" in f.info for f in frames):
            params["blend"] = [f.info["blend"] for f in frames]
        if first.info.get("default_image"):
            params["default_image"] = True
    return params


def _save_params(mime: str, frames: List[Image.Image], options: StripOptions) -> dict:
    if mime == "image/jpeg":
        return {"quality": options.jpeg_quality, "exif": b"", "comment": b""}
    if mime == "image/png":
        params = {
            "compress_level": options.png_compress_level,
            "pnginfo": PngImagePlugin.PngInfo(),
        }
    elif mime == "image/webp":
        params = {"quality": options.webp_quality, "exif": b""}
    else:
        params = {"comment": b""}
    if len(frames) > 1:
        params.update(_animation_params(mime, frames))
    return params


def encode(im: Image.Image, mime: str, options: StripOptions = DEFAULT_OPTIONS) -> bytes:
    """Re-encode an opened image as `mime` with no metadata. Returns the new file bytes."""
    fmt = FORMATS.get(mime)
    if fmt is None:
        raise UnsupportedVariant(f"no encoder for {mime}")
    # JPEG has no animation; MPO secondary images are dropped with the rest.
    frames = read_frames(im, animated=mime != "image/jpeg")
    params = _save_params(mime, frames, options)
    buf = io.BytesIO()
    try:
        frames[0].save(buf, format=fmt, **params)
    except _ENCODE_ERRORS as exc:
        raise EncodeFailure(f"{fmt} encode failed: {exc}") from exc
    return buf.getvalue()


def write_back(path: Path, data: bytes) -> None:
    try:
        replace_atomic(path, data)
    except OSError as exc:
        raise EncodeFailure(f"could not write {path.name}: {exc}") from exc


def _strip(path: Path, mime: str, options: StripOptions) -> None:
    check_size(path, options.max_file_size)
    with open_image(path, options, formats=[FORMATS[mime]]) as im:
        data = encode(im, mime, options)
    write_back(path, data)


def _attempt(path: str | Path, mime: str, options: StripOptions | None) -> bool:
    try:
        _strip(Path(path), mime, options or DEFAULT_OPTIONS)
    except ScrubError as exc:
        logger.warning("%s strip failed for %s: %s", FORMATS[mime], path, exc)
        return False
    except OSError as exc:
        # stat() on a file that vanished, permission denied on open, ...
        logger.warning("%s strip failed for %s: %s", FORMATS[mime], path, exc)
        return False
    return True


def strip_jpeg(path: str | Path, options: StripOptions | None = None) -> bool:
    return _attempt(path, "image/jpeg", options)


def strip_png(path: str | Path, options: StripOptions | None = None) -> bool:
    return _attempt(path, "image/png", options)


def strip_webp(path: str | Path, options: StripOptions | None = None) -> bool:
    """Only registered when the codec was built with WebP support."""
    return _attempt(path, "image/webp", options)


def strip_gif(path: str | Path, options: StripOptions | None = None) -> bool:
    return _attempt(path, "image/gif", options)


class NativeStripper(NamedTuple):
    strategy: StripStrategy
    strip: Callable[..., bool]
    # Capabilities attribute that must be true for this stripper to be usable.
    requires: str | None = None


NATIVE_STRIPPERS = {
    "image/jpeg": NativeStripper(StripStrategy.JPEG_NATIVE, strip_jpeg),
    "image/png": NativeStripper(StripStrategy.PNG_NATIVE, strip_png),
    "image/webp": NativeStripper(StripStrategy.WEBP_NATIVE, strip_webp, "webp"),
    "image/gif": NativeStripper(StripStrategy.GIF_NATIVE, strip_gif),
}
