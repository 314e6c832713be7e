# upload_scrubber/dispatcher.py
"""
Single entry point for the upload pipeline.

The host builds one Dispatcher at startup and hands it to whatever upload
hook it has. Routing is a table lookup on the sniffed MIME type:

    known type, native stripper  -> native, then fallback chain on failure
    known type, no native        -> fallback chain
    unknown / not an image       -> Skipped

Nothing raised inside the engine escapes dispatch(); every call ends in a
StripOutcome.
"""
from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from upload_scrubber.capabilities import Capabilities, detect
from upload_scrubber.cleaners.fallback import run_chain
from upload_scrubber.cleaners.images import NATIVE_STRIPPERS, open_image
from upload_scrubber.errors import DecodeFailure, LimitExceeded
from upload_scrubber.outcomes import StripOutcome, StripReport, StripStrategy
from upload_scrubber.settings import DEFAULT_OPTIONS, StripOptions
from upload_scrubber.utils.files import check_size
from upload_scrubber.utils.signature import IMAGE_MIME_TYPES, is_image_mime, sniff

logger = logging.getLogger(__name__)


class Route(NamedTuple):
    strategy: StripStrategy
    strip: Callable[[Path], bool]


DispatchTable = Dict[str, Optional[Route]]


def build_dispatch_table(capabilities: Capabilities, options: StripOptions = DEFAULT_OPTIONS) -> DispatchTable:
    """
    Every known image type maps to its native stripper, or to None when the
    type is only handled by the fallback chain (BMP, TIFF, ...) or the
    runtime lacks the codec (WebP without libwebp).
    """
    table: DispatchTable = {mime: None for mime in IMAGE_MIME_TYPES}
    for mime, native in NATIVE_STRIPPERS.items():
        if native.requires and not getattr(capabilities, native.requires):
            logger.info("native %s stripper unavailable: codec lacks %s", mime, native.requires)
            continue
        table[mime] = Route(native.strategy, functools.partial(native.strip, options=options))
    return table


class Dispatcher:
    def __init__(
        self,
        capabilities: Capabilities | None = None,
        options: StripOptions | None = None,
        table: DispatchTable | None = None,
    ):
        self.capabilities = capabilities or detect()
        self.options = options or DEFAULT_OPTIONS
        self.table = table if table is not None else build_dispatch_table(self.capabilities, self.options)

    def process_file(self, path: str | Path) -> StripOutcome:
        return self.dispatch(path).outcome

    def process_derivatives(self, primary: str | Path, derivatives: Iterable[str | Path] = ()) -> List[StripOutcome]:
        """
        Clean an upload and its generated sizes. Each path is independent: a
        failure on one never stops the others.
        """
        return [self.process_file(p) for p in (primary, *derivatives)]

    def dispatch(self, path: str | Path) -> StripReport:
        try:
            return self._dispatch(Path(path))
        except Exception:
            logger.exception("unexpected error while stripping %s", path)
            return StripReport(str(path), StripOutcome.FAILED)

    def _dispatch(self, path: Path) -> StripReport:
        if not path.is_file():
            logger.debug("skipping %s: no such file", path)
            return StripReport(str(path), StripOutcome.SKIPPED)

        mime = sniff(path)
        if not is_image_mime(mime) or mime not in self.table:
            logger.debug("skipping %s: not a supported image (%s)", path, mime)
            return StripReport(str(path), StripOutcome.SKIPPED, mime)

        if not self._within_limits(path):
            return StripReport(str(path), StripOutcome.FAILED, mime)

        route = self.table[mime]
        if route is not None:
            if route.strip(path):
                logger.info("stripped %s via %s", path, route.strategy.value)
                return StripReport(str(path), StripOutcome.SUCCESS, mime, route.strategy)
            logger.info("native %s failed for %s, trying fallbacks", route.strategy.value, path)
        else:
            logger.debug("no native stripper for %s, trying fallbacks", mime)

        strategy = run_chain(path, mime, self.capabilities, self.options)
        if strategy is not None:
            logger.info("stripped %s via %s", path, strategy.value)
            return StripReport(str(path), StripOutcome.SUCCESS, mime, strategy)

        logger.warning("could not strip metadata from %s (%s)", path, mime)
        return StripReport(str(path), StripOutcome.FAILED, mime)

    def _within_limits(self, path: Path) -> bool:
        """
        Reject oversized input before any strategy runs, the external tool
        included. Inputs Pillow cannot even identify are left to the
        strategies.
        """
        try:
            check_size(path, self.options.max_file_size)
            with open_image(path, self.options):
                pass
        except LimitExceeded as exc:
            logger.warning("refusing %s: %s", path, exc)
            return False
        except DecodeFailure:
            pass
        return True
