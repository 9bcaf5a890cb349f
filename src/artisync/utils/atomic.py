"""
Durable atomic file replacement.

Content is written to a temp file in the destination's own directory, so the
final ``os.replace`` never crosses a volume boundary, then fsynced and renamed
over the destination. Readers see either the old or the new complete file.
"""

from __future__ import annotations

import io
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

TEMP_PREFIX = ".artisync-"
TEMP_SUFFIX = ".part"
COPY_BUFFER_SIZE = 64 * 1024
DEFAULT_FILE_MODE = 0o644


def atomic_write_stream(path: str | Path, stream: BinaryIO, *, mode: int | None = None) -> None:
    """
    Atomically replace ``path`` with the contents of ``stream``.

    The parent directory must already exist. On any failure the temp file is
    removed and the destination is left untouched.

    Args:
        path: Destination file path
        stream: Readable binary stream, consumed to EOF
        mode: Permission bits for the written file. By default an existing
            destination keeps its bits and a new file gets DEFAULT_FILE_MODE.
    """
    path = Path(path)
    if mode is None:
        mode = _existing_mode(path)
    fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as tmp:
            shutil.copyfileobj(stream, tmp, COPY_BUFFER_SIZE)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    _fsync_dir(path.parent)


def atomic_write_bytes(path: str | Path, data: bytes, *, mode: int | None = None) -> None:
    """Atomically replace ``path`` with ``data``. See atomic_write_stream."""
    atomic_write_stream(path, io.BytesIO(data), mode=mode)


def _existing_mode(path: Path) -> int:
    try:
        return os.stat(path).st_mode & 0o777
    except FileNotFoundError:
        return DEFAULT_FILE_MODE


def _fsync_dir(directory: Path) -> None:
    # Persist the rename itself; not supported on every platform (e.g. Windows)
    try:
        dir_fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)
