"""Build descriptor -- relocate, resolve the output path, then build or run.

Lifecycle::

    b = Build(build_flags="-v", package_spec=".")   # VALIDATED
    await b.relocate()                               # RELOCATED
    b.determine_target(output_dir)                   # PATH_RESOLVED
    await b.build()  # or: await b.run()             # BUILT / RAN

``Build.create()`` performs the first three steps.  Calls made out of
order raise ``CallSequenceViolation`` without touching the descriptor.
The relocated workspace is not removed here; call ``cleanup()``.
"""

from __future__ import annotations

import enum
import logging
import os
import shlex
from pathlib import Path

from gocbuild.config import settings
from gocbuild.errors import CallSequenceViolation, InvalidPackageSpec
from gocbuild.packages import Package
from gocbuild.runner import RunResult, invoke, toolchain_env
from gocbuild.workspace import cleanup_workspace, relocate

logger = logging.getLogger(__name__)

CURRENT_PACKAGE = "."


class BuildState(str, enum.Enum):
    VALIDATED = "validated"
    RELOCATED = "relocated"
    PATH_RESOLVED = "path_resolved"
    BUILT = "built"
    RAN = "ran"


_INVOKABLE = frozenset({BuildState.PATH_RESOLVED, BuildState.BUILT, BuildState.RAN})


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def validate_package_spec(package_spec: str) -> bool:
    """Only ``.`` is accepted, so the binary name follows the directory name."""
    return package_spec == CURRENT_PACKAGE


def resolve_output_path(working_dir: str | Path, is_mod: bool, output_dir: str = "") -> str:
    """Absolute path of the binary to produce.

    An explicit *output_dir* wins, made absolute against *working_dir*.
    Otherwise the binary is named after the working directory; module
    projects replace ``_`` with ``-`` in that name, as ``go build`` does.
    """
    wd = Path(working_dir)
    if output_dir:
        return os.path.normpath(wd / output_dir)

    name = wd.name
    if is_mod:
        name = name.replace("_", "-")
    return str(wd / name)


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


class Build:
    """State of one goc build/run in a relocated workspace.

    Keeps compatible with the go commands it wraps::

        go build [-o output] [build flags] .
        go run [build flags] [-exec xprog] . [arguments...]
    """

    def __init__(
        self,
        build_flags: str = "",
        package_spec: str = CURRENT_PACKAGE,
        *,
        run_exec: str = "",
        run_arguments: list[str] | None = None,
        working_dir: str | Path | None = None,
    ) -> None:
        if not validate_package_spec(package_spec):
            logger.error("Invalid package %r: only '.' is supported", package_spec)
            raise InvalidPackageSpec(package_spec)

        self.build_flags: list[str] = shlex.split(build_flags)
        self.package_spec = package_spec
        self.run_exec = run_exec
        self.run_arguments: list[str] = list(run_arguments or [])
        self.working_dir = Path(working_dir or Path.cwd()).resolve()

        self.packages: dict[str, Package] = {}
        self.tmp_dir = ""
        self.tmp_working_dir = ""
        self.root = ""
        self.is_mod = False
        self.ori_gopath = ""
        self.new_gopath = ""
        self.target = ""
        self.state = BuildState.VALIDATED

    @classmethod
    async def create(
        cls,
        build_flags: str = "",
        package_spec: str = CURRENT_PACKAGE,
        output_dir: str = "",
        **kwargs,
    ) -> Build:
        """Validate, relocate and resolve the target in one step."""
        build = cls(build_flags, package_spec, **kwargs)
        await build.relocate()
        build.determine_target(output_dir)
        return build

    def __repr__(self) -> str:
        return (
            f"Build(state={self.state.value}, is_mod={self.is_mod}, "
            f"tmp_dir={self.tmp_dir!r}, target={self.target!r})"
        )

    # -- Lifecycle ------------------------------------------------------------

    def _require(self, operation: str, allowed: frozenset[BuildState]) -> None:
        if self.state not in allowed:
            expected = " or ".join(sorted(s.value for s in allowed))
            logger.error("Can only call %s() in state %s", operation, expected)
            raise CallSequenceViolation(operation, self.state.value, expected=expected)

    async def relocate(self) -> None:
        """Copy the project into a temp workspace and record its layout."""
        self._require("relocate", frozenset({BuildState.VALIDATED}))
        result = await relocate(self.working_dir, self.build_flags)

        self.packages = result.packages
        self.tmp_dir = result.tmp_dir
        self.tmp_working_dir = result.tmp_working_dir
        self.root = result.root
        self.is_mod = result.is_mod
        self.ori_gopath = result.ori_gopath
        self.new_gopath = result.new_gopath
        self.state = BuildState.RELOCATED

    def determine_target(self, output_dir: str = "") -> str:
        """Compute ``target`` once; requires a relocated workspace."""
        if not self.tmp_dir:
            logger.error("Can only be called after Build.relocate()")
            raise CallSequenceViolation(
                "determine_target", self.state.value, expected=BuildState.RELOCATED.value,
            )
        self._require("determine_target", frozenset({BuildState.RELOCATED}))

        self.target = resolve_output_path(self.working_dir, self.is_mod, output_dir)
        self.state = BuildState.PATH_RESOLVED
        return self.target

    # -- Toolchain ------------------------------------------------------------

    def build_command(self) -> list[str]:
        # A later -o overrides any -o already present in build_flags
        return [
            settings.GO_BINARY, "build", *self.build_flags,
            "-o", self.target, self.package_spec,
        ]

    def run_command(self) -> list[str]:
        argv = [settings.GO_BINARY, "run", *self.build_flags]
        if self.run_exec:
            argv += ["-exec", self.run_exec]
        return [*argv, self.package_spec, *self.run_arguments]

    def _timeout(self, timeout_s: float | None) -> float | None:
        if timeout_s is None:
            timeout_s = settings.BUILD_TIMEOUT_S
        return timeout_s or None

    async def build(self, *, timeout_s: float | None = None) -> RunResult:
        """``go build`` in the temp workspace, writing the binary to ``target``."""
        self._require("build", _INVOKABLE)
        argv = self.build_command()
        logger.info("Go building in temp...")
        logger.info("go build cmd is: %s", argv)
        result = await invoke(
            argv,
            cwd=self.tmp_working_dir,
            env=toolchain_env(self.new_gopath),
            timeout_s=self._timeout(timeout_s),
        )
        self.state = BuildState.BUILT
        logger.info("Go build exit successful.")
        return result

    async def run(self, *, timeout_s: float | None = None) -> RunResult:
        """``go run`` in the temp workspace."""
        self._require("run", _INVOKABLE)
        argv = self.run_command()
        logger.info("go run cmd is: %s", argv)
        result = await invoke(
            argv,
            cwd=self.tmp_working_dir,
            env=toolchain_env(self.new_gopath),
            timeout_s=self._timeout(timeout_s),
        )
        self.state = BuildState.RAN
        return result

    def cleanup(self) -> None:
        """Remove the relocated workspace (no-op before relocation)."""
        if self.tmp_dir:
            cleanup_workspace(self.tmp_dir)
