"""
Update ledger: the creation timestamp of the last applied artifact, per job.

Used to avoid re-downloading/re-applying an artifact version that has already
been deployed. Stored as one small JSON object (``{job_key: timestamp}``) that
is rewritten atomically on every change.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from artisync.exceptions import LedgerError
from artisync.sync.types import parse_timestamp
from artisync.utils.atomic import atomic_write_bytes
from artisync.utils.logging import get_logger

logger = get_logger("artisync.sync.ledger")

# When a job records a new version: once the package is downloaded, or only
# once every entry was applied without failure
LEDGER_MARK_AFTER_DOWNLOAD = "after_download"
LEDGER_MARK_AFTER_SYNC = "after_sync"
LEDGER_MARKS = (LEDGER_MARK_AFTER_DOWNLOAD, LEDGER_MARK_AFTER_SYNC)


class UpdateLedger:
    """
    Ledger accessors.

    Lifecycle: ``load()`` once at startup, then ``get``/``set`` from the
    control loop only. ``set`` persists immediately; ``flush`` rewrites the
    file from memory. Not thread-safe: only the control loop touches it.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._entries: dict[str, datetime] = {}
        self._loaded = False

    def load(self) -> UpdateLedger:
        """
        Read the ledger from disk. A missing file is an empty ledger.

        Raises:
            LedgerError: If the file exists but cannot be read or parsed
        """
        self._entries = {}
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.info(f"No ledger at {self.path}, starting empty")
            self._loaded = True
            return self
        except OSError as e:
            raise LedgerError(f"Cannot read ledger {self.path}: {e}", details={"path": str(self.path)}) from e

        try:
            data = json.loads(raw or b"{}")
        except json.JSONDecodeError as e:
            raise LedgerError(f"Ledger {self.path} is not valid JSON: {e}", details={"path": str(self.path)}) from e
        if not isinstance(data, dict):
            raise LedgerError(f"Ledger {self.path} must be a JSON object", details={"path": str(self.path)})

        for key, value in data.items():
            try:
                self._entries[str(key)] = parse_timestamp(str(value))
            except ValueError as e:
                raise LedgerError(
                    f"Ledger {self.path} has an invalid timestamp for {key!r}: {value!r}",
                    details={"path": str(self.path), "key": key},
                ) from e

        self._loaded = True
        logger.debug(f"Loaded {len(self._entries)} ledger entries from {self.path}")
        return self

    def get(self, key: str) -> datetime | None:
        self._ensure_loaded()
        return self._entries.get(key)

    def is_current(self, key: str, created_at: datetime) -> bool:
        """True if ``created_at`` is the version already recorded for ``key``."""
        recorded = self.get(key)
        return recorded is not None and recorded == created_at

    def set(self, key: str, created_at: datetime) -> None:
        """Record ``created_at`` for ``key`` and persist the whole ledger."""
        self._ensure_loaded()
        self._entries[key] = created_at
        self.flush()

    def keys(self) -> list[str]:
        return list(self._entries)

    def flush(self) -> None:
        """
        Atomically rewrite the ledger file.

        Raises:
            LedgerError: If the file cannot be written
        """
        payload = {key: ts.isoformat() for key, ts in sorted(self._entries.items())}
        data = (json.dumps(payload, indent=2) + "\n").encode("utf-8")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(self.path, data)
        except OSError as e:
            raise LedgerError(f"Cannot write ledger {self.path}: {e}", details={"path": str(self.path)}) from e

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
