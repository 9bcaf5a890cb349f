"""
Type definitions for sync jobs, artifact versions and per-entry outcomes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO


@dataclass(frozen=True)
class Secret:
    """Authorization token for every repository of one owner."""

    owner: str
    token: str = field(repr=False)


@dataclass(frozen=True)
class SyncJob:
    """
    Config for a single artifact deployment job.

    One job tracks the newest artifact named ``artifact_name`` in
    ``owner/repo`` and mirrors its files into ``deploy_path``.
    """

    owner: str
    repo: str
    artifact_name: str
    deploy_path: Path
    # Ordered; each pattern must match a whole archive path
    excludes: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        """Ledger key: ``owner.repo.artifact_name``."""
        return f"{self.owner}.{self.repo}.{self.artifact_name}"


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as emitted by the GitHub API (trailing ``Z`` allowed)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ArtifactVersion:
    """One timestamped build output. ``created_at`` is the version identity."""

    id: int
    name: str
    created_at: datetime
    download_url: str
    size_in_bytes: int = 0
    expired: bool = False

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> ArtifactVersion:
        """Build from one item of the ``artifacts`` list of the GitHub REST API."""
        return cls(
            id=int(payload.get("id", 0)),
            name=str(payload["name"]),
            created_at=parse_timestamp(str(payload["created_at"])),
            download_url=str(payload["archive_download_url"]),
            size_in_bytes=int(payload.get("size_in_bytes") or 0),
            expired=bool(payload.get("expired", False)),
        )


@dataclass(frozen=True)
class ArchiveEntry:
    """
    One file record inside a package.

    ``opener`` returns a fresh binary stream over the entry's content on each
    call, so the content can be fingerprinted and then copied without being
    buffered in memory.
    """

    path: str
    opener: Callable[[], BinaryIO] = field(repr=False, compare=False)
    is_dir: bool = False

    def open(self) -> BinaryIO:
        return self.opener()


class OutcomeStatus(str, Enum):
    SKIPPED = "skipped"
    WRITTEN = "written"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of synchronizing one archive entry."""

    path: str
    status: OutcomeStatus
    reason: str | None = None

    @classmethod
    def skipped(cls, path: str) -> SyncOutcome:
        return cls(path=path, status=OutcomeStatus.SKIPPED)

    @classmethod
    def written(cls, path: str) -> SyncOutcome:
        return cls(path=path, status=OutcomeStatus.WRITTEN)

    @classmethod
    def failed(cls, path: str, reason: str) -> SyncOutcome:
        return cls(path=path, status=OutcomeStatus.FAILED, reason=reason)


@dataclass
class SyncSummary:
    """Aggregate of one synchronize call, for logs and the ledger policy."""

    outcomes: list[SyncOutcome] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)

    def _with_status(self, status: OutcomeStatus) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def written(self) -> list[SyncOutcome]:
        return self._with_status(OutcomeStatus.WRITTEN)

    @property
    def skipped(self) -> list[SyncOutcome]:
        return self._with_status(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> list[SyncOutcome]:
        return self._with_status(OutcomeStatus.FAILED)

    @property
    def ok(self) -> bool:
        return not self.failed

    def as_dict(self) -> dict[str, Any]:
        return {
            "written": len(self.written),
            "skipped": len(self.skipped),
            "excluded": len(self.excluded),
            "failed": len(self.failed),
        }
