"""
Artisync - keep deploy directories in sync with CI build artifacts.

Polls GitHub Actions artifacts and applies only the files whose content
changed, each through an atomic replace.
"""

__version__ = "0.1.0"

from artisync.config import Settings, load_settings

# Exceptions
from artisync.exceptions import (
    ArchiveError,
    ArtifactNotFoundError,
    ArtisyncError,
    ConfigurationError,
    FilesystemError,
    LedgerError,
    PathTraversalError,
    SyncError,
    TransportError,
)
from artisync.service import ArtisyncService, run_service
from artisync.sync import (
    ExclusionMatcher,
    SyncJob,
    UpdateLedger,
    is_excluded,
    run_job,
    sync_entry,
    synchronize,
)
from artisync.utils.fingerprint import fingerprint, fingerprint_file

# Logging utilities
from artisync.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Core
    "fingerprint",
    "fingerprint_file",
    "is_excluded",
    "ExclusionMatcher",
    "sync_entry",
    "synchronize",
    "UpdateLedger",
    "SyncJob",
    "run_job",
    # Service
    "ArtisyncService",
    "run_service",
    # Config
    "Settings",
    "load_settings",
    # Logging
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    # Exceptions
    "ArtisyncError",
    "ConfigurationError",
    "TransportError",
    "ArtifactNotFoundError",
    "SyncError",
    "PathTraversalError",
    "FilesystemError",
    "ArchiveError",
    "LedgerError",
]
