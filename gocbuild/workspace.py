"""Workspace relocation -- copy a Go project into an isolated temp tree.

Two layouts are supported:

- **module**: the nearest ancestor holding ``go.mod`` is the project
  root; the whole root is copied into the temp directory.
- **legacy**: the project lives under a GOPATH entry; each listed package
  (and its same-GOPATH dependencies) is copied to ``<tmp>/src/<import
  path>`` so the temp directory can act as a new GOPATH entry.

Nothing here runs the build; see ``gocbuild.build``.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import shutil
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from gocbuild.config import settings
from gocbuild.errors import GocError, RelocationFailure
from gocbuild.packages import Package, go_env, list_packages

logger = logging.getLogger(__name__)

TMP_FOLDER_PREFIX = "goc-build-"
MODULE_MANIFEST = "go.mod"


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class Relocation(BaseModel):
    """Result of relocating one project."""

    model_config = ConfigDict(frozen=True)

    tmp_dir: str = Field(..., description="Root of the relocated workspace")
    tmp_working_dir: str = Field(..., description="Working dir inside tmp_dir")
    root: str = Field(..., description="go.mod dir (module) or GOPATH entry (legacy)")
    is_mod: bool
    ori_gopath: str = ""
    new_gopath: str = ""
    packages: dict[str, Package] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def tmp_folder_name(path: str | Path) -> str:
    """Deterministic temp folder name for a project working directory."""
    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()
    return TMP_FOLDER_PREFIX + digest[:12]


def tmp_base_dir() -> Path:
    return Path(settings.TMP_ROOT or tempfile.gettempdir())


def find_module_root(start: str | Path) -> Path | None:
    """Return the nearest directory (inclusive) containing ``go.mod``."""
    path = Path(start).resolve()
    for candidate in (path, *path.parents):
        if (candidate / MODULE_MANIFEST).is_file():
            return candidate
    return None


def _gopath_entries(gopath: str) -> list[Path]:
    return [Path(p).resolve() for p in gopath.split(os.pathsep) if p]


def _legacy_root(cwd: Path, pkgs: dict[str, Package], gopath: str) -> Path | None:
    """GOPATH entry that owns *cwd*: ``Root`` from go list, else a prefix match."""
    for pkg in pkgs.values():
        if pkg.root and pkg.module is None:
            return Path(pkg.root).resolve()
    for entry in _gopath_entries(gopath):
        try:
            cwd.relative_to(entry / "src")
        except ValueError:
            continue
        return entry
    return None


def _copy_tree(src: str | Path, dst: str | Path) -> None:
    try:
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    except (OSError, shutil.Error) as exc:
        raise RelocationFailure(f"copy failed: {exc}", path=str(src)) from exc


def _prepare_tmp_dir(cwd: Path) -> Path:
    """Remove any previous workspace for *cwd* and create an empty one."""
    tmp_dir = tmp_base_dir() / tmp_folder_name(cwd)
    try:
        if tmp_dir.exists():
            shutil.rmtree(tmp_dir)
        tmp_dir.mkdir(parents=True)
    except OSError as exc:
        raise RelocationFailure(f"cannot prepare temp dir: {exc}", path=str(tmp_dir)) from exc
    return tmp_dir


def _ensure_outside(tmp_dir: Path, source: Path) -> None:
    # copytree would recurse into a workspace nested in its own source
    if tmp_dir.resolve().is_relative_to(source):
        raise RelocationFailure(
            f"temp dir {tmp_dir} lies inside the project being copied",
            path=str(source),
        )


def _tmp_working_dir(tmp_dir: Path, root: Path, cwd: Path) -> Path:
    try:
        rel = cwd.relative_to(root)
    except ValueError:
        raise RelocationFailure(
            f"working directory is not inside project root {root}",
            path=str(cwd),
        )
    return tmp_dir / rel


def _new_gopath(tmp_dir: Path, ori_gopath: str) -> str:
    if ori_gopath:
        return f"{tmp_dir}{os.pathsep}{ori_gopath}"
    return str(tmp_dir)


# ---------------------------------------------------------------------------
# Copy strategies
# ---------------------------------------------------------------------------


def copy_module_project(root: Path, tmp_dir: Path) -> None:
    """Copy the whole module root into *tmp_dir*."""
    logger.debug("Copying module project %s -> %s", root, tmp_dir)
    _copy_tree(root, tmp_dir)


def copy_legacy_project(root: Path, tmp_dir: Path, pkgs: dict[str, Package]) -> None:
    """Copy listed packages and their same-GOPATH deps under ``<tmp>/src``.

    Dependencies living in other GOPATH entries are left in place and
    reached through the appended original GOPATH.
    """
    visited: set[str] = set()
    src_root = root / "src"
    for import_path in sorted(pkgs):
        pkg = pkgs[import_path]
        if not pkg.dir or pkg.dir in visited:
            continue
        _copy_tree(pkg.dir, tmp_dir / "src" / import_path)
        visited.add(pkg.dir)

        for dep in pkg.deps:
            dep_src = src_root / dep
            if str(dep_src) in visited or not dep_src.is_dir():
                continue
            _copy_tree(dep_src, tmp_dir / "src" / dep)
            visited.add(str(dep_src))


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def relocate(
    working_dir: str | Path,
    build_flags: list[str] | None = None,
) -> Relocation:
    """List packages under *working_dir* and copy the project to a temp tree.

    A partially populated workspace is removed before the error propagates.

    Raises
    ------
    RelocationFailure
        When package listing, layout detection, or copying fails.
    """
    cwd = Path(working_dir).resolve()
    pkgs = await list_packages(cwd, build_flags)
    tmp_dir = _prepare_tmp_dir(cwd)
    try:
        return await _relocate_into(cwd, tmp_dir, pkgs)
    except (GocError, asyncio.CancelledError):
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise


async def _relocate_into(cwd: Path, tmp_dir: Path, pkgs: dict[str, Package]) -> Relocation:
    module_root = find_module_root(cwd)
    if module_root is not None:
        _ensure_outside(tmp_dir, module_root)
        tmp_wd = _tmp_working_dir(tmp_dir, module_root, cwd)
        await asyncio.to_thread(copy_module_project, module_root, tmp_dir)
        logger.info("Relocated module project %s to %s", module_root, tmp_dir)
        return Relocation(
            tmp_dir=str(tmp_dir),
            tmp_working_dir=str(tmp_wd),
            root=str(module_root),
            is_mod=True,
            packages=pkgs,
        )

    ori_gopath = os.environ.get("GOPATH", "") or await go_env("GOPATH")
    root = _legacy_root(cwd, pkgs, ori_gopath)
    _ensure_outside(tmp_dir, cwd)
    if root is not None:
        tmp_wd = _tmp_working_dir(tmp_dir, root, cwd)
        await asyncio.to_thread(copy_legacy_project, root, tmp_dir, pkgs)
    else:
        # Legacy project outside every GOPATH entry
        root = cwd
        tmp_wd = tmp_dir / "src" / cwd.name
        await asyncio.to_thread(_copy_tree, cwd, tmp_wd)

    logger.info("Relocated legacy project %s to %s", root, tmp_dir)
    return Relocation(
        tmp_dir=str(tmp_dir),
        tmp_working_dir=str(tmp_wd),
        root=str(root),
        is_mod=False,
        ori_gopath=ori_gopath,
        new_gopath=_new_gopath(tmp_dir, ori_gopath),
        packages=pkgs,
    )


def cleanup_workspace(tmp_dir: str | Path) -> None:
    """Remove a relocated workspace.  Missing directories are ignored."""
    path = Path(tmp_dir)
    if not path.name.startswith(TMP_FOLDER_PREFIX):
        raise RelocationFailure("refusing to remove a non-gocbuild directory", path=str(path))
    shutil.rmtree(path, ignore_errors=True)
    logger.debug("Removed workspace %s", path)
