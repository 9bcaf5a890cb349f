"""
Typed, immutable settings built from the raw configuration.

Example ``config.yaml``::

    poll_interval_s: 300
    work_dir: .artisync
    ledger:
      file: ledger.json
      mark: after_download      # or after_sync
    sync:
      max_workers: 8
    github:
      timeout_s: 120
    secrets:
      - owner: acme
        token: ${ACME_TOKEN}
    jobs:
      - owner: acme
        repo: website
        artifact_name: dist
        excludes: ["config\\.json", "uploads/.*"]
        deploy_path: /srv/www/acme
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from artisync.config.loader import Config, load_config
from artisync.exceptions import ConfigurationError
from artisync.sync.ledger import LEDGER_MARK_AFTER_DOWNLOAD, LEDGER_MARKS
from artisync.sync.types import Secret, SyncJob

DEFAULT_POLL_INTERVAL_S = 300.0
DEFAULT_WORK_DIR = ".artisync"
DEFAULT_LEDGER_FILE = "ledger.json"
DEFAULT_REQUEST_TIMEOUT_S = 120.0

# Key aliases accepted from the job.json layout of earlier deployments
_JOB_KEY_ALIASES = {"artifactName": "artifact_name", "deployPath": "deploy_path"}


@dataclass(frozen=True)
class Settings:
    """Everything the service needs, fixed for the life of the process."""

    project_dir: Path
    jobs: tuple[SyncJob, ...]
    secrets: tuple[Secret, ...] = ()
    work_dir: Path = Path(DEFAULT_WORK_DIR)
    ledger_file: Path = Path(DEFAULT_LEDGER_FILE)
    ledger_mark: str = LEDGER_MARK_AFTER_DOWNLOAD
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    max_workers: int | None = None
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    github_base_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def tokens(self) -> dict[str, str]:
        return {s.owner: s.token for s in self.secrets}


def load_settings(project_dir: Path | None = None, env: str | None = None) -> Settings:
    """Load ``config.yaml`` from ``project_dir`` and validate it into Settings."""
    project_dir = Path(project_dir) if project_dir is not None else Path.cwd()
    return settings_from_config(load_config(project_dir, env=env), project_dir)


def settings_from_config(config: Config | dict[str, Any], project_dir: Path) -> Settings:
    """
    Validate raw configuration into Settings.

    All problems are collected and reported together.

    Raises:
        ConfigurationError: If any job, secret or setting is invalid
    """
    data = config.data if isinstance(config, Config) else config
    errors: list[str] = []

    secrets = _parse_secrets(data.get("secrets"), errors)
    jobs = _parse_jobs(data.get("jobs"), project_dir, errors)

    owners_with_token = {s.owner for s in secrets}
    for job in jobs:
        if job.owner not in owners_with_token:
            errors.append(f"job '{job.key}': no secret configured for owner '{job.owner}'")

    ledger = data.get("ledger") or {}
    if not isinstance(ledger, dict):
        errors.append("'ledger' must be a mapping")
        ledger = {}
    ledger_mark = str(ledger.get("mark", LEDGER_MARK_AFTER_DOWNLOAD))
    if ledger_mark not in LEDGER_MARKS:
        errors.append(f"'ledger.mark' must be one of {list(LEDGER_MARKS)}, got '{ledger_mark}'")

    poll_interval_s = _positive_number(data.get("poll_interval_s", DEFAULT_POLL_INTERVAL_S), "poll_interval_s", errors)

    sync_section = data.get("sync") or {}
    max_workers = sync_section.get("max_workers") if isinstance(sync_section, dict) else None
    if max_workers is not None:
        max_workers = int(_positive_number(max_workers, "sync.max_workers", errors))

    github = data.get("github") or {}
    if not isinstance(github, dict):
        errors.append("'github' must be a mapping")
        github = {}
    timeout_s = _positive_number(github.get("timeout_s", DEFAULT_REQUEST_TIMEOUT_S), "github.timeout_s", errors)

    if errors:
        raise ConfigurationError(
            "Invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors),
            details={"errors": errors},
        )

    return Settings(
        project_dir=project_dir,
        jobs=tuple(jobs),
        secrets=tuple(secrets),
        work_dir=_resolve_path(data.get("work_dir", DEFAULT_WORK_DIR), project_dir),
        ledger_file=_resolve_path(ledger.get("file", DEFAULT_LEDGER_FILE), project_dir),
        ledger_mark=ledger_mark,
        poll_interval_s=poll_interval_s,
        max_workers=max_workers,
        request_timeout_s=timeout_s,
        github_base_url=github.get("base_url"),
        raw=data,
    )


def _parse_secrets(raw: Any, errors: list[str]) -> list[Secret]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.append("'secrets' must be a list")
        return []

    secrets: list[Secret] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            errors.append(f"secrets[{i}] must be a mapping")
            continue
        owner, token = item.get("owner"), item.get("token")
        if not owner or not isinstance(owner, str):
            errors.append(f"secrets[{i}]: 'owner' is required")
            continue
        if not token or not isinstance(token, str) or token.startswith("${"):
            errors.append(f"secrets[{i}] ({owner}): 'token' is missing or its environment variable is unset")
            continue
        secrets.append(Secret(owner=owner, token=token))
    return secrets


def _parse_jobs(raw: Any, project_dir: Path, errors: list[str]) -> list[SyncJob]:
    if not raw:
        errors.append("'jobs' must list at least one job")
        return []
    if not isinstance(raw, list):
        errors.append("'jobs' must be a list")
        return []

    jobs: list[SyncJob] = []
    seen: set[str] = set()
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            errors.append(f"jobs[{i}] must be a mapping")
            continue
        item = {_JOB_KEY_ALIASES.get(k, k): v for k, v in item.items()}

        missing = [k for k in ("owner", "repo", "artifact_name", "deploy_path") if not item.get(k)]
        if missing:
            errors.append(f"jobs[{i}]: missing {', '.join(missing)}")
            continue

        excludes = item.get("excludes") or []
        if not isinstance(excludes, list) or not all(isinstance(p, str) for p in excludes):
            errors.append(f"jobs[{i}]: 'excludes' must be a list of strings")
            continue

        job = SyncJob(
            owner=str(item["owner"]),
            repo=str(item["repo"]),
            artifact_name=str(item["artifact_name"]),
            deploy_path=_resolve_path(item["deploy_path"], project_dir),
            excludes=tuple(excludes),
        )
        if job.key in seen:
            errors.append(f"jobs[{i}]: duplicate job '{job.key}'")
            continue
        seen.add(job.key)
        jobs.append(job)
    return jobs


def _positive_number(value: Any, name: str, errors: list[str]) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors.append(f"'{name}' must be a number, got {value!r}")
        return 1.0
    if number <= 0:
        errors.append(f"'{name}' must be > 0, got {value!r}")
        return 1.0
    return number


def _resolve_path(value: Any, project_dir: Path) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else project_dir / path
