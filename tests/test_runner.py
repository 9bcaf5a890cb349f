"""
Tests for the single-job runner.
"""

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from aioresponses import aioresponses

from artisync.connections.github import GitHubArtifactSource
from artisync.exceptions import ArtifactNotFoundError, TransportError
from artisync.sync.ledger import LEDGER_MARK_AFTER_SYNC, UpdateLedger
from artisync.sync.runner import JobStatus, run_job
from artisync.sync.types import ArtifactVersion, SyncJob

T1 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeSource:
    """In-memory artifact source serving prebuilt packages."""

    def __init__(self, version=None, package=None, list_error=None, download_error=None):
        self.version = version
        self.package = package
        self.list_error = list_error
        self.download_error = download_error
        self.downloads = 0

    async def latest_artifact(self, job):
        if self.list_error:
            raise self.list_error
        return self.version

    async def download(self, job, version, work_dir):
        self.downloads += 1
        if self.download_error:
            raise self.download_error
        return self.package


def _version(created_at=T1, id_=1):
    return ArtifactVersion(id=id_, name="dist", created_at=created_at, download_url=f"https://example/{id_}")


@pytest.fixture
def job(deploy_dir):
    return SyncJob(owner="acme", repo="site", artifact_name="dist", deploy_path=deploy_dir, excludes=(r"b/.*",))


@pytest.fixture
def ledger(tmp_path):
    return UpdateLedger(tmp_path / "ledger.json").load()


class TestRunJob:
    @pytest.mark.asyncio
    async def test_new_version_applied_and_recorded(self, job, ledger, make_package, tmp_path, deploy_dir):
        source = FakeSource(_version(), make_package({"a.txt": "X", "b/c.txt": "Y"}))
        result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path / "work")

        assert result.status is JobStatus.SYNCED
        assert (deploy_dir / "a.txt").read_text() == "X"
        assert not (deploy_dir / "b").exists()
        assert result.summary.excluded == ["b/c.txt"]
        assert UpdateLedger(ledger.path).load().get(job.key) == T1

    @pytest.mark.asyncio
    async def test_recorded_version_not_downloaded(self, job, ledger, make_package, tmp_path):
        ledger.set(job.key, T1)
        source = FakeSource(_version(), make_package({"a.txt": "X"}))
        result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path)

        assert result.status is JobStatus.UNCHANGED
        assert source.downloads == 0

    @pytest.mark.asyncio
    async def test_newer_version_replaces_record(self, job, ledger, make_package, tmp_path, deploy_dir):
        ledger.set(job.key, T1)
        newer = T1 + timedelta(hours=1)
        source = FakeSource(_version(newer, 2), make_package({"a.txt": "Z"}))
        result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path)

        assert result.status is JobStatus.SYNCED
        assert ledger.get(job.key) == newer
        assert (deploy_dir / "a.txt").read_text() == "Z"

    @pytest.mark.asyncio
    async def test_listing_failure_mutates_nothing(self, job, ledger, tmp_path):
        source = FakeSource(list_error=TransportError("HTTP 502", status=502))
        result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path)

        assert result.status is JobStatus.TRANSPORT_ERROR
        assert ledger.get(job.key) is None
        assert not ledger.path.exists()

    @pytest.mark.asyncio
    async def test_not_found_is_transport_error(self, job, ledger, tmp_path):
        source = FakeSource(list_error=ArtifactNotFoundError(job.key, "dist"))
        result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path)
        assert result.status is JobStatus.TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_download_failure_leaves_ledger(self, job, ledger, tmp_path):
        source = FakeSource(_version(), download_error=TransportError("reset"))
        result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path)

        assert result.status is JobStatus.TRANSPORT_ERROR
        assert ledger.get(job.key) is None

    @pytest.mark.asyncio
    async def test_corrupt_package_after_download_mark(self, job, ledger, tmp_path):
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"garbage")
        source = FakeSource(_version(), bogus)
        result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path)

        assert result.status is JobStatus.ARCHIVE_ERROR
        # Marked before extraction: this version is not retried
        assert ledger.get(job.key) == T1


class TestSourceFailures:
    """Failures inside a real GitHub source skip the job instead of escaping."""

    LIST_URL = re.compile(r"^https://api\.github\.com/repos/acme/site/actions/artifacts(\?.*)?$")

    @pytest.mark.asyncio
    async def test_non_json_listing(self, job, ledger, tmp_path):
        with aioresponses() as m:
            m.get(self.LIST_URL, body="<html>oops</html>", content_type="application/json")
            async with GitHubArtifactSource({"acme": "tok"}) as source:
                result = await run_job(job, source=source, ledger=ledger, work_dir=tmp_path / "work")

        assert result.status is JobStatus.TRANSPORT_ERROR
        assert "Malformed" in result.error
        assert ledger.get(job.key) is None
        assert not ledger.path.exists()

    @pytest.mark.asyncio
    async def test_unwritable_work_dir(self, job, ledger, tmp_path, deploy_dir):
        work_dir = tmp_path / "work"
        work_dir.write_text("not a directory")
        artifact = {
            "id": 5,
            "name": "dist",
            "archive_download_url": "https://api.github.com/repos/acme/site/actions/artifacts/5/zip",
            "expired": False,
            "created_at": "2024-05-01T12:00:00Z",
        }
        with aioresponses() as m:
            m.get(self.LIST_URL, payload={"total_count": 1, "artifacts": [artifact]})
            m.get(artifact["archive_download_url"], body=b"PK")
            async with GitHubArtifactSource({"acme": "tok"}) as source:
                result = await run_job(job, source=source, ledger=ledger, work_dir=work_dir)

        assert result.status is JobStatus.TRANSPORT_ERROR
        assert result.version.id == 5
        assert ledger.get(job.key) is None
        assert list(deploy_dir.iterdir()) == []


class TestAfterSyncMark:
    @pytest.mark.asyncio
    async def test_partial_failure_not_recorded(self, job, ledger, make_package, tmp_path, deploy_dir):
        source = FakeSource(_version(), make_package({"../evil.txt": "x", "a.txt": "X"}))
        result = await run_job(
            job, source=source, ledger=ledger, work_dir=tmp_path, ledger_mark=LEDGER_MARK_AFTER_SYNC
        )

        assert result.status is JobStatus.PARTIAL
        assert (deploy_dir / "a.txt").read_text() == "X"
        assert ledger.get(job.key) is None

    @pytest.mark.asyncio
    async def test_success_recorded(self, job, ledger, make_package, tmp_path):
        source = FakeSource(_version(), make_package({"a.txt": "X"}))
        await run_job(job, source=source, ledger=ledger, work_dir=tmp_path, ledger_mark=LEDGER_MARK_AFTER_SYNC)
        assert ledger.get(job.key) == T1

    @pytest.mark.asyncio
    async def test_corrupt_package_not_recorded(self, job, ledger, tmp_path):
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"garbage")
        source = FakeSource(_version(), bogus)
        await run_job(job, source=source, ledger=ledger, work_dir=tmp_path, ledger_mark=LEDGER_MARK_AFTER_SYNC)
        assert ledger.get(job.key) is None


class TestJobResult:
    @pytest.mark.asyncio
    async def test_as_dict(self, job, ledger, make_package, tmp_path):
        source = FakeSource(_version(), make_package({"a.txt": "X", "b/c.txt": "Y"}))
        result = await run_job(job, source=source, ledger=ledger, work_dir=Path(tmp_path))
        assert result.as_dict() == {
            "job": "acme.site.dist",
            "status": "synced",
            "created_at": T1.isoformat(),
            "written": 1,
            "skipped": 0,
            "excluded": 1,
            "failed": 0,
            "error": None,
        }
