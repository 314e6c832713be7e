# upload_scrubber/hooks.py
"""
Adapter between a host upload pipeline and the Dispatcher.

The host fires two events:
- right after an upload lands on disk (`handle_upload`), with a dict that
  carries the stored path under "file" and the declared type under "type";
- after it generated resized copies (`generate_attachment_metadata`), with
  the attachment metadata: the primary file relative to the upload root and
  a "sizes" mapping whose entries name sibling files.

Both return their input untouched. Stripping is best-effort and never
blocks, rejects or rewrites an upload record.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from upload_scrubber.dispatcher import Dispatcher
from upload_scrubber.outcomes import StripOutcome

logger = logging.getLogger(__name__)


class UploadHooks:
    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    def handle_upload(self, upload: Dict[str, Any], context: str = "upload") -> Dict[str, Any]:
        declared = upload.get("type") or ""
        if context != "upload" or not declared.startswith("image/") or not upload.get("file"):
            return upload
        outcome = self.dispatcher.process_file(upload["file"])
        if outcome is StripOutcome.FAILED:
            logger.warning("metadata left in uploaded file %s", upload["file"])
        return upload

    def generate_attachment_metadata(self, metadata: Dict[str, Any], upload_root: str | Path) -> Dict[str, Any]:
        if not metadata.get("file"):
            return metadata
        primary = Path(upload_root) / metadata["file"]
        derivatives = derivative_paths(primary, metadata.get("sizes"))
        outcomes = self.dispatcher.process_derivatives(primary, derivatives)
        failed = [str(p) for p, o in zip([primary, *derivatives], outcomes) if o is StripOutcome.FAILED]
        if failed:
            logger.warning("metadata left in %d of %d files: %s", len(failed), len(outcomes), ", ".join(failed))
        return metadata


def derivative_paths(primary: Path, sizes: Any) -> List[Path]:
    """Sibling paths named by the "sizes" entries that carry a "file" key."""
    if not isinstance(sizes, dict):
        return []
    return [
        primary.parent / size["file"]
        for size in sizes.values()
        if isinstance(size, dict) and size.get("file")
    ]
