# upload_scrubber/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# Re-encode parameters
JPEG_QUALITY = int(os.getenv("SCRUBBER_JPEG_QUALITY", 90))
WEBP_QUALITY = int(os.getenv("SCRUBBER_WEBP_QUALITY", 80))
PNG_COMPRESS_LEVEL = int(os.getenv("SCRUBBER_PNG_COMPRESS_LEVEL", 9))

# Limits applied before any decode
MAX_IMAGE_PIXELS = int(os.getenv("SCRUBBER_MAX_IMAGE_PIXELS", 50_000_000))
MAX_FRAMES = int(os.getenv("SCRUBBER_MAX_FRAMES", 1000))
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 100 * 1024 * 1024))

# External tool (ImageMagick). Unset means autodetect `magick`, then `convert`.
ALLOW_EXEC = _env_bool("SCRUBBER_ALLOW_EXEC", True)
EXTERNAL_TOOL = os.getenv("SCRUBBER_EXTERNAL_TOOL") or None
TOOL_TIMEOUT = float(os.getenv("SCRUBBER_TOOL_TIMEOUT", 30))


@dataclass(frozen=True)
class StripOptions:
    """Encode parameters and resource limits handed to every strip call."""

    jpeg_quality: int = JPEG_QUALITY
    webp_quality: int = WEBP_QUALITY
    png_compress_level: int = PNG_COMPRESS_LEVEL
    max_pixels: int = MAX_IMAGE_PIXELS
    max_frames: int = MAX_FRAMES
    max_file_size: int = MAX_FILE_SIZE
    tool_timeout: float = TOOL_TIMEOUT


DEFAULT_OPTIONS = StripOptions()
