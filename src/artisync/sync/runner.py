"""
Artifact -> deploy directory job runner.

One polling tick for one job: find the newest artifact, compare it with the
ledger, download it when it is new, mark the ledger and apply the package.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from artisync.exceptions import ArchiveError, TransportError
from artisync.sync.archive import synchronize
from artisync.sync.exclusion import ExclusionMatcher
from artisync.sync.ledger import LEDGER_MARK_AFTER_DOWNLOAD, LEDGER_MARK_AFTER_SYNC, UpdateLedger
from artisync.sync.types import ArtifactVersion, SyncJob, SyncSummary
from artisync.utils.logging import get_logger

logger = get_logger("artisync.sync.runner")


class ArtifactSource(Protocol):
    """What the runner needs from a CI provider."""

    async def latest_artifact(self, job: SyncJob) -> ArtifactVersion: ...

    async def download(self, job: SyncJob, version: ArtifactVersion, work_dir: str | Path) -> Path: ...


class JobStatus(str, Enum):
    UNCHANGED = "unchanged"
    SYNCED = "synced"
    PARTIAL = "partial"
    TRANSPORT_ERROR = "transport_error"
    ARCHIVE_ERROR = "archive_error"


@dataclass
class JobResult:
    job_key: str
    status: JobStatus
    version: ArtifactVersion | None = None
    summary: SyncSummary | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "job": self.job_key,
            "status": self.status.value,
            "created_at": self.version.created_at.isoformat() if self.version else None,
            **(self.summary.as_dict() if self.summary else {}),
            "error": self.error,
        }


async def run_job(
    job: SyncJob,
    *,
    source: ArtifactSource,
    ledger: UpdateLedger,
    work_dir: str | Path,
    ledger_mark: str = LEDGER_MARK_AFTER_DOWNLOAD,
    matcher: ExclusionMatcher | None = None,
    max_workers: int | None = None,
) -> JobResult:
    """
    Run a single job once (one polling tick).

    Transport failures leave the ledger untouched, so the next tick retries.
    LedgerError propagates: the service must not keep running without a
    durable ledger.
    """
    logger.info(f"Running job: {job.key}")

    try:
        version = await source.latest_artifact(job)
    except TransportError as e:
        logger.error(f"Job {job.key}: {e.message}")
        return JobResult(job.key, JobStatus.TRANSPORT_ERROR, error=e.message)

    if ledger.is_current(job.key, version.created_at):
        logger.debug(f"Job {job.key}: artifact {version.id} already applied")
        return JobResult(job.key, JobStatus.UNCHANGED, version=version)

    try:
        package = await source.download(job, version, work_dir)
    except TransportError as e:
        logger.error(f"Job {job.key}: {e.message}")
        return JobResult(job.key, JobStatus.TRANSPORT_ERROR, version=version, error=e.message)

    if ledger_mark == LEDGER_MARK_AFTER_DOWNLOAD:
        # A crash during extraction leaves this version marked as applied
        ledger.set(job.key, version.created_at)

    try:
        summary = await asyncio.to_thread(
            synchronize,
            package,
            job.deploy_path,
            matcher if matcher is not None else ExclusionMatcher(job.excludes),
            max_workers=max_workers,
        )
    except ArchiveError as e:
        logger.error(f"Job {job.key}: {e.message}")
        return JobResult(job.key, JobStatus.ARCHIVE_ERROR, version=version, error=e.message)

    if ledger_mark == LEDGER_MARK_AFTER_SYNC and summary.ok:
        ledger.set(job.key, version.created_at)

    status = JobStatus.SYNCED if summary.ok else JobStatus.PARTIAL
    counts = summary.as_dict()
    logger.info(
        f"Job {job.key}: applied artifact {version.id} ({version.created_at.isoformat()}) - "
        f"{counts['written']} written, {counts['skipped']} unchanged, "
        f"{counts['excluded']} excluded, {counts['failed']} failed"
    )
    return JobResult(job.key, status, version=version, summary=summary)
