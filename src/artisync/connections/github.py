"""
GitHub Actions artifact source.

Lists the artifacts of a repository through the REST API and streams a
chosen artifact's zip package into the local work directory.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
import aiohttp

from artisync.exceptions import ArtifactNotFoundError, TransportError
from artisync.sync.types import ArtifactVersion, SyncJob
from artisync.utils.logging import get_logger

logger = get_logger("artisync.connections.github")

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class GitHubArtifactSource:
    """
    Artifact listing and download for GitHub Actions.

    Tokens are looked up per repository owner. Use as an async context
    manager, or call ``close()`` explicitly when done.

    Example:
        ```python
        async with GitHubArtifactSource({"acme": token}) as source:
            version = await source.latest_artifact(job)
            package = await source.download(job, version, work_dir)
        ```
    """

    def __init__(
        self,
        tokens: dict[str, str],
        *,
        base_url: str = GITHUB_API_URL,
        timeout: float = 120,
        per_page: int = 100,
    ):
        self.tokens = dict(tokens)
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.per_page = per_page
        self.session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self.session is None or self.session.closed:
                self.session = aiohttp.ClientSession(timeout=self.timeout)
            return self.session

    async def __aenter__(self) -> GitHubArtifactSource:
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        async with self._session_lock:
            if self.session and not self.session.closed:
                await self.session.close()
            self.session = None

    def _headers(self, owner: str) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        token = self.tokens.get(owner)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def list_artifacts(self, job: SyncJob) -> list[ArtifactVersion]:
        """
        List the artifacts of ``job``'s repository that carry its artifact name.

        Raises:
            TransportError: On connection errors, non-2xx responses or malformed payloads
        """
        session = await self._ensure_session()
        url = f"{self.base_url}/repos/{job.owner}/{job.repo}/actions/artifacts"
        params = {"name": job.artifact_name, "per_page": str(self.per_page)}
        try:
            async with session.get(url, params=params, headers=self._headers(job.owner)) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise TransportError(
                        f"Listing artifacts failed with HTTP {resp.status}: {text[:200]}",
                        job_key=job.key,
                        status=resp.status,
                    )
                payload = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Listing artifacts failed: {e!r}", job_key=job.key) from e
        except ValueError as e:
            # A 200 whose body is not JSON, e.g. a proxy error page
            raise TransportError(f"Malformed artifacts response: {e!r}", job_key=job.key) from e

        try:
            items = payload.get("artifacts") or []
            versions = [ArtifactVersion.from_api(item) for item in items]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed artifacts response: {e!r}", job_key=job.key) from e

        return [v for v in versions if v.name == job.artifact_name]

    async def latest_artifact(self, job: SyncJob) -> ArtifactVersion:
        """
        Return the newest live artifact named ``job.artifact_name``.

        Raises:
            ArtifactNotFoundError: If there is none
            TransportError: If listing fails
        """
        versions = await self.list_artifacts(job)
        versions.sort(key=lambda v: v.created_at, reverse=True)
        for version in versions:
            if version.expired:
                logger.debug(f"Skipping expired artifact {version.id} of {job.key}")
                continue
            return version
        raise ArtifactNotFoundError(job.key, job.artifact_name)

    async def download(self, job: SyncJob, version: ArtifactVersion, work_dir: str | Path) -> Path:
        """
        Stream ``version``'s package to ``<work_dir>/artifacts/<job.key>.zip``.

        The body is first written under ``<work_dir>/tmp`` and renamed into
        place only once complete.

        Returns:
            Path of the downloaded package

        Raises:
            TransportError: On connection errors, non-2xx responses or when the
                package cannot be stored under ``work_dir``
        """
        work_dir = Path(work_dir)
        tmp_dir = work_dir / "tmp"
        artifacts_dir = work_dir / "artifacts"
        target = artifacts_dir / f"{job.key}.zip"

        session = await self._ensure_session()
        tmp_name: str | None = None
        try:
            tmp_dir.mkdir(parents=True, exist_ok=True)
            artifacts_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix="artifact-tmp-", dir=tmp_dir)
            os.close(fd)
            async with session.get(version.download_url, headers=self._headers(job.owner)) as resp:
                if resp.status >= 400:
                    raise TransportError(
                        f"Downloading artifact {version.id} failed with HTTP {resp.status}",
                        job_key=job.key,
                        status=resp.status,
                    )
                async with aiofiles.open(tmp_name, "wb") as f:
                    async for chunk in resp.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                        await f.write(chunk)
            os.replace(tmp_name, target)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _unlink_quietly(tmp_name)
            raise TransportError(f"Downloading artifact {version.id} failed: {e!r}", job_key=job.key) from e
        except OSError as e:
            _unlink_quietly(tmp_name)
            raise TransportError(
                f"Storing artifact {version.id} under {work_dir} failed: {e}",
                job_key=job.key,
            ) from e
        except BaseException:
            _unlink_quietly(tmp_name)
            raise

        logger.debug(f"Downloaded artifact {version.id} of {job.key} to {target}")
        return target


def _unlink_quietly(path: str | None) -> None:
    if path is None:
        return
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
