"""
Shared fixtures: zip packages built on the fly.
"""

import io
import zipfile
from pathlib import Path

import pytest

from artisync.sync.types import ArchiveEntry


def build_zip(path: Path, files: dict[str, bytes | str | None]) -> Path:
    """Write a zip at ``path``. A value of None adds a directory entry."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            if content is None:
                zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                zf.writestr(name, content.encode() if isinstance(content, str) else content)
    return path


def memory_entry(path: str, content: bytes | str) -> ArchiveEntry:
    data = content.encode() if isinstance(content, str) else content
    return ArchiveEntry(path=path, opener=lambda: io.BytesIO(data))


@pytest.fixture
def make_package(tmp_path):
    """Factory: make_package({"a.txt": "X"}, name="pkg.zip") -> Path."""
    counter = {"n": 0}

    def _make(files: dict[str, bytes | str | None], name: str | None = None) -> Path:
        counter["n"] += 1
        return build_zip(tmp_path / (name or f"package-{counter['n']}.zip"), files)

    return _make


@pytest.fixture
def deploy_dir(tmp_path):
    path = tmp_path / "deploy"
    path.mkdir()
    return path
