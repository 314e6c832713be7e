# upload_scrubber/utils/files.py
"""
In-place rewrite helpers.

Stripped output is always produced next to the original and moved over it
with os.replace, so a failed write never leaves a truncated image behind.
"""
from __future__ import annotations

import contextlib
import os
import stat
import tempfile
from pathlib import Path
from typing import Iterator

from upload_scrubber.errors import LimitExceeded

_TMP_PREFIX = ".scrub-"


def check_size(path: Path, max_size: int) -> None:
    size = path.stat().st_size
    if size > max_size:
        raise LimitExceeded(f"{path.name} is {size} bytes, limit is {max_size}")


def read_limited(path: Path, max_size: int) -> bytes:
    check_size(path, max_size)
    return path.read_bytes()


def _copy_mode(src: Path, dst: str) -> None:
    try:
        os.chmod(dst, stat.S_IMODE(src.stat().st_mode))
    except OSError:
        # Not fatal: the temp file keeps its 0600 mode.
        pass


def replace_atomic(path: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(prefix=_TMP_PREFIX, suffix=path.suffix, dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        _copy_mode(path, tmp)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise


@contextlib.contextmanager
def temp_sibling(path: Path) -> Iterator[Path]:
    """Reserve a temp path in the same directory as `path`; removed on exit."""
    fd, tmp = tempfile.mkstemp(prefix=_TMP_PREFIX, suffix=path.suffix, dir=str(path.parent))
    os.close(fd)
    try:
        yield Path(tmp)
    finally:
        with contextlib.suppress(OSError):
            os.unlink(tmp)


def move_over(tmp: Path, path: Path) -> None:
    _copy_mode(path, str(tmp))
    os.replace(tmp, path)
