"""
Sync subsystem: apply CI artifact packages onto deploy directories.

Fingerprint-based differential extraction with atomic replaces, plus the
ledger that remembers which artifact version each job last applied.
"""

from artisync.sync.archive import iter_zip_entries, synchronize, synchronize_entries
from artisync.sync.exclusion import ExclusionMatcher, is_excluded
from artisync.sync.extractor import extract_diff, resolve_destination, sync_entry
from artisync.sync.ledger import UpdateLedger
from artisync.sync.runner import JobResult, JobStatus, run_job
from artisync.sync.types import (
    ArchiveEntry,
    ArtifactVersion,
    OutcomeStatus,
    Secret,
    SyncJob,
    SyncOutcome,
    SyncSummary,
)

__all__ = [
    "ArchiveEntry",
    "ArtifactVersion",
    "ExclusionMatcher",
    "JobResult",
    "JobStatus",
    "OutcomeStatus",
    "Secret",
    "SyncJob",
    "SyncOutcome",
    "SyncSummary",
    "UpdateLedger",
    "extract_diff",
    "is_excluded",
    "iter_zip_entries",
    "resolve_destination",
    "run_job",
    "sync_entry",
    "synchronize",
    "synchronize_entries",
]
