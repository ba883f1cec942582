"""Package metadata -- ``go list -json`` output as pydantic models.

``list_packages()`` returns the package graph (import path → ``Package``)
consumed by the relocator and by instrumentation collaborators.
"""

from __future__ import annotations

import asyncio
import json
import logging
import subprocess
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gocbuild.config import settings
from gocbuild.errors import RelocationFailure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ModuleInfo(BaseModel):
    """The module a package belongs to (module layout only)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str = Field("", alias="Path")
    dir: str = Field("", alias="Dir")
    go_mod: str = Field("", alias="GoMod")
    main: bool = Field(False, alias="Main")
    version: str = Field("", alias="Version")


class PackageError(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    pos: str = Field("", alias="Pos")
    err: str = Field("", alias="Err")


class Package(BaseModel):
    """One entry of ``go list -json`` output."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    dir: str = Field("", alias="Dir")
    import_path: str = Field(..., alias="ImportPath")
    name: str = Field("", alias="Name")
    target: str = Field("", alias="Target")
    root: str = Field("", alias="Root", description="GOPATH entry (legacy only)")
    goroot: bool = Field(False, alias="Goroot")
    standard: bool = Field(False, alias="Standard")
    module: ModuleInfo | None = Field(None, alias="Module")

    go_files: list[str] = Field(default_factory=list, alias="GoFiles")
    cgo_files: list[str] = Field(default_factory=list, alias="CgoFiles")
    test_go_files: list[str] = Field(default_factory=list, alias="TestGoFiles")
    xtest_go_files: list[str] = Field(default_factory=list, alias="XTestGoFiles")
    imports: list[str] = Field(default_factory=list, alias="Imports")
    deps: list[str] = Field(default_factory=list, alias="Deps")

    error: PackageError | None = Field(None, alias="Error")
    deps_errors: list[PackageError] = Field(default_factory=list, alias="DepsErrors")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def parse_list_output(raw: str) -> dict[str, Package]:
    """Decode the concatenated JSON objects printed by ``go list -json``.

    Raises
    ------
    RelocationFailure
        On malformed JSON, or when a package reports a load error.
    """
    decoder = json.JSONDecoder()
    pkgs: dict[str, Package] = {}
    idx = 0
    end = len(raw)
    while True:
        while idx < end and raw[idx].isspace():
            idx += 1
        if idx >= end:
            break
        try:
            obj, idx = decoder.raw_decode(raw, idx)
            pkg = Package.model_validate(obj)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise RelocationFailure(f"cannot decode go list output: {exc}") from exc
        if pkg.error is not None:
            raise RelocationFailure(
                f"package {pkg.import_path} has error: {pkg.error.err}",
                path=pkg.dir,
            )
        for dep_err in pkg.deps_errors:
            logger.warning("Dependency error in %s: %s", pkg.import_path, dep_err.err)
        pkgs[pkg.import_path] = pkg
    return pkgs


# ---------------------------------------------------------------------------
# go list
# ---------------------------------------------------------------------------


async def list_packages(
    cwd: str | Path,
    build_flags: list[str] | None = None,
) -> dict[str, Package]:
    """Run ``go list -json [build flags] ./...`` in *cwd*.

    Returns the package graph keyed by import path.
    """
    args = [settings.GO_BINARY, "list", "-json", *(build_flags or []), "./..."]

    def _sync() -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            args,
            cwd=str(cwd),
            capture_output=True,
            text=True,
        )

    logger.debug("go list cmd is: %s", args)
    try:
        result = await asyncio.to_thread(_sync)
    except OSError as exc:
        raise RelocationFailure(f"cannot run go list: {exc}", path=str(cwd)) from exc

    if result.returncode != 0:
        err = (result.stderr or "").strip()
        logger.error("go list failed (rc=%d): %s", result.returncode, err)
        raise RelocationFailure(f"go list failed: {err}", path=str(cwd))

    return parse_list_output(result.stdout or "")


async def go_env(name: str) -> str:
    """Return ``go env <name>``, or ``""`` when the toolchain cannot answer."""

    def _sync() -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [settings.GO_BINARY, "env", name],
            capture_output=True,
            text=True,
        )

    try:
        result = await asyncio.to_thread(_sync)
    except OSError as exc:
        logger.warning("go env %s failed: %s", name, exc)
        return ""
    if result.returncode != 0:
        return ""
    return (result.stdout or "").strip()
