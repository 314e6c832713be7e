# upload_scrubber/cleaners/fallback.py
"""
Fallback chain, used when there is no native stripper for a type or the
native one failed:

1) ImageMagick `-strip`, if a binary was found and we may spawn processes.
2) Generic Pillow decode from memory (format sniffed by Pillow, not forced)
   and the same re-encode the native strippers use.

Both write to a sibling temp file and replace the original only on success,
so a failed chain leaves the upload exactly as it was.
"""
from __future__ import annotations

import io
import logging
import subprocess
from pathlib import Path

from upload_scrubber.capabilities import Capabilities, detect
from upload_scrubber.cleaners.images import FORMATS, encode, open_image, write_back
from upload_scrubber.errors import (
    ScrubError,
    ToolExecutionFailure,
    ToolUnavailable,
    UnsupportedVariant,
)
from upload_scrubber.outcomes import StripStrategy
from upload_scrubber.settings import DEFAULT_OPTIONS, StripOptions
from upload_scrubber.utils.files import check_size, move_over, read_limited, temp_sibling

logger = logging.getLogger(__name__)

# ImageMagick coder names. Used as explicit "CODER:path" prefixes so the tool
# neither guesses the input format from content nor changes the container.
_CODERS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
    "image/bmp": "BMP",
    "image/tiff": "TIFF",
    "image/x-icon": "ICO",
    "image/avif": "AVIF",
    "image/heic": "HEIC",
}


# ImageMagick reads "name[0]" as a subimage selector and expands globs.
_FILENAME_SYNTAX = frozenset("[]*?{}")


def build_tool_command(tool: str, path: Path, out: Path, mime: str) -> list[str]:
    coder = _CODERS.get(mime)
    if coder is None:
        raise ToolUnavailable(f"no ImageMagick coder for {mime}")
    for target in (path, out):
        if _FILENAME_SYNTAX.intersection(str(target.resolve())):
            raise ToolUnavailable(f"ImageMagick would reinterpret the path {target.name!r}")
    # Argument list, no shell: the path is never parsed by anything but the tool.
    return [tool, f"{coder}:{path.resolve()}", "-strip", f"{coder}:{out.resolve()}"]


def run_external_tool(path: Path, mime: str, capabilities: Capabilities, options: StripOptions = DEFAULT_OPTIONS) -> None:
    if not capabilities.can_exec:
        raise ToolUnavailable("process execution is disabled")
    if capabilities.external_tool is None:
        raise ToolUnavailable("no ImageMagick binary found")
    check_size(path, options.max_file_size)

    with temp_sibling(path) as out:
        cmd = build_tool_command(capabilities.external_tool, path, out, mime)
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=options.tool_timeout)
        except subprocess.TimeoutExpired as exc:
            raise ToolExecutionFailure(f"timed out after {options.tool_timeout}s") from exc
        except OSError as exc:
            raise ToolExecutionFailure(str(exc)) from exc
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise ToolExecutionFailure(f"exit status {proc.returncode}: {stderr}")
        if not out.exists() or out.stat().st_size == 0:
            raise ToolExecutionFailure("tool reported success but wrote no output")
        move_over(out, path)


def strip_with_codec(path: Path, mime: str, options: StripOptions = DEFAULT_OPTIONS) -> None:
    if mime not in FORMATS:
        raise UnsupportedVariant(f"generic codec cannot re-encode {mime}")
    data = read_limited(path, options.max_file_size)
    with open_image(io.BytesIO(data), options) as im:
        out = encode(im, mime, options)
    write_back(path, out)


def run_chain(path: str | Path, mime: str, capabilities: Capabilities, options: StripOptions = DEFAULT_OPTIONS) -> StripStrategy | None:
    """Try each fallback in order. Returns the strategy that succeeded, or None."""
    path = Path(path)
    steps = (
        (StripStrategy.EXTERNAL_TOOL, lambda: run_external_tool(path, mime, capabilities, options)),
        (StripStrategy.GENERIC_CODEC, lambda: strip_with_codec(path, mime, options)),
    )
    for strategy, step in steps:
        try:
            step()
        except ToolUnavailable as exc:
            logger.debug("%s skipped for %s: %s", strategy.value, path, exc)
        except (ScrubError, OSError) as exc:
            logger.warning("%s failed for %s: %s", strategy.value, path, exc)
        else:
            return strategy
    return None


def fallback_strip(path: str | Path, mime: str, capabilities: Capabilities | None = None, options: StripOptions | None = None) -> bool:
    return run_chain(path, mime, capabilities or detect(), options or DEFAULT_OPTIONS) is not None
