"""
Archive synchronizer: apply every entry of a zip package onto a directory.

Entries are independent and address disjoint destination files, so they are
extracted concurrently on a bounded thread pool. The call returns only after
every entry has finished, which is what lets the caller treat a package as
applied as soon as ``synchronize`` returns.
"""

from __future__ import annotations

import os
import zipfile
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import BinaryIO

from artisync.exceptions import ArchiveError
from artisync.sync.exclusion import ExclusionMatcher
from artisync.sync.extractor import sync_entry
from artisync.sync.types import ArchiveEntry, OutcomeStatus, SyncSummary
from artisync.utils.logging import get_logger

logger = get_logger("artisync.sync.archive")


def default_max_workers() -> int:
    """Same default as ThreadPoolExecutor: min(32, cpu_count + 4)."""
    return min(32, (os.cpu_count() or 1) + 4)


def iter_zip_entries(archive: zipfile.ZipFile) -> Iterator[ArchiveEntry]:
    """Yield one ArchiveEntry per member of ``archive``, directories included."""
    for info in archive.infolist():
        yield ArchiveEntry(
            path=info.filename,
            opener=partial(archive.open, info),
            is_dir=info.is_dir(),
        )


def synchronize_entries(
    entries: Iterable[ArchiveEntry],
    destination_root: str | Path,
    exclusion_patterns: Iterable[str] | ExclusionMatcher | None = None,
    *,
    max_workers: int | None = None,
) -> SyncSummary:
    """
    Filter ``entries`` and extract the remaining ones concurrently.

    Args:
        entries: Archive entries (directories are skipped)
        destination_root: Deploy directory
        exclusion_patterns: Pattern list or a prebuilt matcher
        max_workers: Thread pool size (default: default_max_workers())

    Returns:
        SyncSummary with one outcome per extracted entry
    """
    matcher = (
        exclusion_patterns
        if isinstance(exclusion_patterns, ExclusionMatcher)
        else ExclusionMatcher(exclusion_patterns)
    )
    summary = SyncSummary()

    pending: list[ArchiveEntry] = []
    for entry in entries:
        if entry.is_dir:
            continue
        if matcher.matches(entry.path):
            summary.excluded.append(entry.path)
            continue
        pending.append(entry)

    if not pending:
        return summary

    workers = max(1, min(max_workers or default_max_workers(), len(pending)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="artisync-extract") as pool:
        # map() preserves archive order in the summary; the with-block joins every worker
        summary.outcomes.extend(pool.map(lambda e: sync_entry(e, destination_root), pending))

    for outcome in summary.outcomes:
        if outcome.status is OutcomeStatus.FAILED:
            logger.error(f"Extract {outcome.path}: {outcome.reason}")
    return summary


def synchronize(
    package: str | Path | BinaryIO,
    destination_root: str | Path,
    exclusion_patterns: Iterable[str] | ExclusionMatcher | None = None,
    *,
    max_workers: int | None = None,
) -> SyncSummary:
    """
    Apply a zip package onto ``destination_root``.

    Per-entry failures are logged and collected in the summary; they never
    abort the batch.

    Raises:
        ArchiveError: If the package itself cannot be opened
    """
    try:
        archive = zipfile.ZipFile(package)
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Cannot open package {package}: {e}", details={"package": str(package)}) from e

    with archive:
        summary = synchronize_entries(
            iter_zip_entries(archive),
            destination_root,
            exclusion_patterns,
            max_workers=max_workers,
        )

    logger.debug(f"Synchronized {package} -> {destination_root}: {summary.as_dict()}")
    return summary
