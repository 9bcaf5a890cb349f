"""
Artisync exception hierarchy.

All domain-specific exceptions inherit from ArtisyncError, making it easy
to catch any deployer error with a single base class while still allowing
fine-grained handling when needed.

Hierarchy::

    ArtisyncError
    ├── ConfigurationError        - config loading, parsing, validation
    ├── TransportError            - artifact listing / download failures
    │   └── ArtifactNotFoundError - no live artifact with the job's name
    ├── SyncError                 - applying a package to disk
    │   ├── PathTraversalError    - entry resolves outside the deploy root
    │   ├── FilesystemError       - permission, disk full, rename failure
    │   └── ArchiveError          - package cannot be opened or enumerated
    └── LedgerError               - ledger read/write
"""

from __future__ import annotations


class ArtisyncError(Exception):
    """Base exception for all Artisync errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(ArtisyncError):
    """Raised when configuration loading, parsing, or validation fails.

    Fatal at startup: the service refuses to run partially configured.
    """


# --- Transport ---------------------------------------------------------------


class TransportError(ArtisyncError):
    """Raised when the artifact source cannot be listed or downloaded.

    The job is skipped for this cycle and no state is mutated.
    """

    def __init__(self, message: str, *, job_key: str | None = None, status: int | None = None) -> None:
        super().__init__(message, details={"job": job_key, "status": status})
        self.job_key = job_key
        self.status = status


class ArtifactNotFoundError(TransportError):
    """Raised when no live artifact matches the job's artifact name."""

    def __init__(self, job_key: str, artifact_name: str) -> None:
        super().__init__(f"No artifact named '{artifact_name}' found", job_key=job_key)
        self.artifact_name = artifact_name


# --- Synchronization ---------------------------------------------------------


class SyncError(ArtisyncError):
    """Raised when applying a package onto the deploy directory fails."""


class PathTraversalError(SyncError):
    """Raised when an archive entry resolves outside the destination root."""

    def __init__(self, entry_path: str, resolved: str) -> None:
        super().__init__(
            f"Illegal file path: {entry_path} resolves to {resolved}",
            details={"entry": entry_path, "resolved": resolved},
        )
        self.entry_path = entry_path
        self.resolved = resolved


class FilesystemError(SyncError):
    """Raised when a single entry cannot be read, written or renamed."""

    def __init__(self, path: str, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(f"{path}: {message}", details={"path": path})
        self.path = path
        if cause is not None:
            self.__cause__ = cause


class ArchiveError(SyncError):
    """Raised when a package cannot be opened or its entries enumerated."""


# --- Ledger ------------------------------------------------------------------


class LedgerError(ArtisyncError):
    """Raised when the update ledger cannot be read or written."""
