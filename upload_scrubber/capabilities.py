# upload_scrubber/capabilities.py
"""
Static facts about the runtime: can the codec handle WebP, may we spawn
processes, and is there an ImageMagick binary to spawn.

Probed once per process (see detect()) and read-only afterwards.
"""
from __future__ import annotations

import functools
import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass

from PIL import features

from upload_scrubber import settings

logger = logging.getLogger(__name__)

_TOOL_CANDIDATES = ("magick", "convert")
# Platforms where subprocess cannot spawn anything.
_NO_EXEC_PLATFORMS = {"emscripten", "wasi"}


@dataclass(frozen=True)
class Capabilities:
    webp: bool
    can_exec: bool
    external_tool: str | None = None

    @property
    def tool_available(self) -> bool:
        return self.can_exec and self.external_tool is not None


def _webp_supported() -> bool:
    try:
        return bool(features.check("webp"))
    except (ValueError, ImportError):
        return False


def _is_imagemagick(binary: str) -> bool:
    """Run `<binary> -version` and make sure it is ImageMagick, not a namesake."""
    try:
        out = subprocess.run(
            [binary, "-version"],
            check=True,
            capture_output=True,
            text=True,
            timeout=10,
        ).stdout
    except (OSError, subprocess.SubprocessError):
        return False
    return "ImageMagick" in out


def _find_tool(tool: str | None) -> str | None:
    candidates = (tool,) if tool else _TOOL_CANDIDATES
    for name in candidates:
        if sys.platform == "win32" and name == "convert":
            # That is the Windows filesystem converter.
            continue
        binary = shutil.which(name)
        if binary and _is_imagemagick(binary):
            return binary
    return None


def probe(allow_exec: bool = settings.ALLOW_EXEC, tool: str | None = settings.EXTERNAL_TOOL) -> Capabilities:
    can_exec = allow_exec and sys.platform not in _NO_EXEC_PLATFORMS
    caps = Capabilities(
        webp=_webp_supported(),
        can_exec=can_exec,
        external_tool=_find_tool(tool) if can_exec else None,
    )
    logger.debug("runtime capabilities: %s", caps)
    return caps


@functools.lru_cache(maxsize=1)
def detect() -> Capabilities:
    return probe()
