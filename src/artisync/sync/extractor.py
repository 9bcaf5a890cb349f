"""
Differential extraction of a single archive entry.

An entry is written only when its fingerprint differs from the file already
deployed at the same relative path, and then always through an atomic
replace.
"""

from __future__ import annotations

import os
from pathlib import Path

from artisync.exceptions import FilesystemError, PathTraversalError
from artisync.sync.types import ArchiveEntry, SyncOutcome
from artisync.utils.atomic import atomic_write_stream
from artisync.utils.fingerprint import fingerprint, fingerprint_file
from artisync.utils.logging import get_logger

logger = get_logger("artisync.sync.extractor")


def resolve_destination(destination_root: str | Path, entry_path: str) -> Path:
    """
    Join ``entry_path`` onto ``destination_root`` and normalize it.

    The check is textual: the normalized path must stay strictly below the
    absolute, normalized root. ``..`` escapes and absolute paths both fail.
    A relative root is taken against the current directory.

    Raises:
        PathTraversalError: If the path escapes the root
    """
    root = os.path.abspath(os.fspath(destination_root))
    resolved = os.path.abspath(os.path.join(root, entry_path))
    if not resolved.startswith(root.rstrip(os.sep) + os.sep):
        raise PathTraversalError(entry_path, resolved)
    return Path(resolved)


def has_diff(entry: ArchiveEntry, dest_file: Path) -> bool:
    """
    True if ``dest_file`` is missing or its content differs from the entry.
    """
    with entry.open() as src:
        entry_fp = fingerprint(src)
    try:
        existing_fp = fingerprint_file(dest_file)
    except FileNotFoundError:
        return True
    return entry_fp != existing_fp


def extract_diff(entry: ArchiveEntry, destination_root: str | Path) -> bool:
    """
    Write ``entry`` below ``destination_root`` if it changed.

    Returns:
        True if the file was written, False if it was already up to date

    Raises:
        PathTraversalError: If the entry escapes the destination root
        FilesystemError: If reading the entry or writing the file fails
    """
    dest_file = resolve_destination(destination_root, entry.path)

    try:
        if not has_diff(entry, dest_file):
            logger.debug(f"No diff: {entry.path}")
            return False

        logger.info(f"Extracting: {entry.path}")
        dest_file.parent.mkdir(parents=True, exist_ok=True)
        with entry.open() as src:
            atomic_write_stream(dest_file, src)
    except OSError as e:
        raise FilesystemError(str(dest_file), e.strerror or str(e), cause=e) from e
    return True


def sync_entry(entry: ArchiveEntry, destination_root: str | Path) -> SyncOutcome:
    """
    Synchronize one entry and report the outcome instead of raising.

    Failures are scoped to this entry, so sibling entries keep going.
    """
    try:
        written = extract_diff(entry, destination_root)
    except PathTraversalError as e:
        return SyncOutcome.failed(entry.path, f"path traversal: {e.message}")
    except FilesystemError as e:
        return SyncOutcome.failed(entry.path, e.message)
    except Exception as e:
        # Corrupt archive members surface as zipfile.BadZipFile, zlib.error, ...
        return SyncOutcome.failed(entry.path, f"{type(e).__name__}: {e}")
    if written:
        return SyncOutcome.written(entry.path)
    return SyncOutcome.skipped(entry.path)
