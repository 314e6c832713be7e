# scripts/cli_clean.py
r"""
Re-clean already-uploaded images in place (no upload pipeline needed).
Usage examples (from project root, with your venv activated):

  python scripts/cli_clean.py path/to/photo.jpg
  python scripts/cli_clean.py /var/www/uploads        (processes every file inside, recursively)
  python scripts/cli_clean.py uploads --no-exec       (never call ImageMagick)

Files are sniffed by content, so extensions do not matter; non-images are skipped.
Exit status is 1 if any file could not be cleaned.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensures "upload_scrubber" is importable even when running by path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from upload_scrubber.capabilities import detect, probe  # noqa: E402
from upload_scrubber.dispatcher import Dispatcher  # noqa: E402
from upload_scrubber.outcomes import StripOutcome  # noqa: E402


def iter_files(target: Path):
    if target.is_file():
        yield target
    else:
        for p in sorted(target.rglob("*")):
            if p.is_file() and not p.name.startswith(".scrub-"):
                yield p


def clean_one(dispatcher: Dispatcher, path: Path) -> StripOutcome:
    report = dispatcher.dispatch(path)
    if report.outcome is StripOutcome.SUCCESS:
        print(f"✅ Cleaned: {path} ({report.strategy.value})")
    elif report.outcome is StripOutcome.FAILED:
        print(f"❌ Failed to clean {path}")
    else:
        print(f"• Skipping non-image file: {path.name}")
    return report.outcome


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Strip EXIF/IPTC/XMP and text chunks from images, in place.")
    parser.add_argument("path", help="File or folder to clean")
    parser.add_argument("--no-exec", action="store_true", help="Do not fall back to ImageMagick")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every strategy attempt")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    root = Path(args.path).expanduser().resolve()
    if not root.exists():
        print(f"❌ Not found: {root}")
        return 1

    capabilities = probe(allow_exec=False) if args.no_exec else detect()
    if not capabilities.tool_available and not args.no_exec:
        print("ℹ️ ImageMagick not found; only the built-in codec will be used.")
    dispatcher = Dispatcher(capabilities=capabilities)

    outcomes = [clean_one(dispatcher, f) for f in iter_files(root)]

    if not any(o is StripOutcome.SUCCESS for o in outcomes):
        print("ℹ️ Nothing cleaned. Did you pass a supported image (jpg/png/gif/webp)?")
    return 1 if StripOutcome.FAILED in outcomes else 0


if __name__ == "__main__":
    sys.exit(main())
