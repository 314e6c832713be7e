# upload_scrubber/outcomes.py
from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class StripOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class StripStrategy(str, Enum):
    JPEG_NATIVE = "jpeg-native"
    PNG_NATIVE = "png-native"
    WEBP_NATIVE = "webp-native"
    GIF_NATIVE = "gif-native"
    EXTERNAL_TOOL = "external-tool"
    GENERIC_CODEC = "generic-codec"


class StripReport(NamedTuple):
    path: str
    outcome: StripOutcome
    mime: str | None = None
    strategy: StripStrategy | None = None
