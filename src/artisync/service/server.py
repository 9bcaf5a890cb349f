"""
Artisync long-running service.

Provides:
- A polling loop that runs every configured job sequentially, then sleeps
  for the poll interval
- Graceful shutdown: a stop request lets the running job finish its batch
  and prevents new jobs from starting
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path

from artisync.config.settings import Settings, load_settings
from artisync.connections.github import GITHUB_API_URL, GitHubArtifactSource
from artisync.sync.exclusion import ExclusionMatcher
from artisync.sync.ledger import UpdateLedger
from artisync.sync.runner import ArtifactSource, JobResult, run_job
from artisync.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("artisync.service")


class ArtisyncService:
    def __init__(self, settings: Settings, *, source: ArtifactSource | None = None):
        self.settings = settings
        self.ledger = UpdateLedger(settings.ledger_file)
        self.matchers: dict[str, ExclusionMatcher] = {}

        self._owns_source = source is None
        self.source: ArtifactSource = source or GitHubArtifactSource(
            settings.tokens,
            base_url=settings.github_base_url or GITHUB_API_URL,
            timeout=settings.request_timeout_s,
        )

        self.last_results: dict[str, JobResult] = {}
        self._stopping = asyncio.Event()
        self._initialized = False

    def initialize(self) -> None:
        """Load the ledger, prepare the work directory and compile exclusion rules."""
        self.ledger.load()
        for sub in ("tmp", "artifacts"):
            (self.settings.work_dir / sub).mkdir(parents=True, exist_ok=True)
        self.matchers = {job.key: ExclusionMatcher(job.excludes) for job in self.settings.jobs}
        self._initialized = True
        logger.info(f"Initialized with {len(self.settings.jobs)} jobs, ledger at {self.settings.ledger_file}")

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def stop(self) -> None:
        """Request shutdown. The job currently running completes first."""
        if not self._stopping.is_set():
            logger.info("Stop requested, finishing current job")
        self._stopping.set()

    async def run_once(self) -> list[JobResult]:
        """Run every job once, in configuration order."""
        if not self._initialized:
            self.initialize()

        results: list[JobResult] = []
        for job in self.settings.jobs:
            if self._stopping.is_set():
                break
            result = await run_job(
                job,
                source=self.source,
                ledger=self.ledger,
                work_dir=self.settings.work_dir,
                ledger_mark=self.settings.ledger_mark,
                matcher=self.matchers.get(job.key),
                max_workers=self.settings.max_workers,
            )
            self.last_results[job.key] = result
            results.append(result)
        return results

    async def run_forever(self) -> None:
        """Poll until stop() is called."""
        try:
            while not self._stopping.is_set():
                await self.run_once()
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.settings.poll_interval_s)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.close()

    async def close(self) -> None:
        if self._owns_source and isinstance(self.source, GitHubArtifactSource):
            await self.source.close()


async def run_service(project_dir: Path | None = None, env: str | None = None) -> None:
    """
    Load configuration, set up logging and poll until SIGINT/SIGTERM.

    Raises:
        ConfigurationError: If the configuration is invalid (nothing runs)
    """
    settings = load_settings(project_dir, env=env)
    setup_logging_from_config(settings.raw, project_dir=settings.project_dir)

    service = ArtisyncService(settings)
    service.initialize()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except (NotImplementedError, RuntimeError):
            # Not available on Windows event loops
            pass

    await service.run_forever()
