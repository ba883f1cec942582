"""Shared test fixtures.

Provides:
- ``tmp_root`` -- autouse fixture pointing ``settings.TMP_ROOT`` at a
  per-test directory so relocated workspaces never touch the real temp dir
- ``make_package`` -- builds a ``Package`` from ``go list``-style fields
"""

from pathlib import Path

import pytest

from gocbuild.config import settings
from gocbuild.packages import Package


@pytest.fixture(autouse=True)
def tmp_root(tmp_path, monkeypatch) -> Path:
    root = tmp_path / "tmproot"
    root.mkdir()
    monkeypatch.setattr(settings, "TMP_ROOT", str(root))
    monkeypatch.setattr(settings, "BUILD_TIMEOUT_S", 0)
    return root


@pytest.fixture
def make_package():
    def _make(import_path: str, directory: Path | str = "", **fields) -> Package:
        data = {"ImportPath": import_path, "Dir": str(directory), **fields}
        return Package.model_validate(data)

    return _make
