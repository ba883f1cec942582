"""Toolchain runner -- streaming subprocess execution for go build / go run.

Commands are executed from an explicit argument list (never through a
shell).  Standard output and error are inherited from the parent so
toolchain progress is visible live.  Cancelling the awaiting task, or
exceeding ``timeout_s``, kills the child process.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from gocbuild.errors import ProcessExecutionFailure, ProcessStartFailure

logger = logging.getLogger(__name__)

GOPATH_ENV = "GOPATH"


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class RunResult(BaseModel):
    """Outcome of a toolchain invocation that exited successfully."""

    model_config = ConfigDict(frozen=True)

    command: list[str] = Field(..., description="The argv that was executed")
    exit_code: int = Field(..., description="Process exit code")
    duration_ms: int = Field(default=0, ge=0, description="Wall-clock duration in ms")
    killed: bool = Field(default=False, description="True if killed on timeout")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def toolchain_env(new_gopath: str) -> dict[str, str] | None:
    """Environment for the child process.

    ``None`` means inherit unchanged.  The parent's ``os.environ`` is
    never modified.
    """
    if not new_gopath:
        return None
    env = dict(os.environ)
    env[GOPATH_ENV] = new_gopath
    return env


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()


# ---------------------------------------------------------------------------
# Core runner
# ---------------------------------------------------------------------------


async def invoke(
    argv: list[str],
    *,
    cwd: str | Path,
    env: dict[str, str] | None = None,
    timeout_s: float | None = None,
) -> RunResult:
    """Run *argv* in *cwd* and wait for it to exit.

    Parameters
    ----------
    argv:
        Program and arguments.
    cwd:
        Working directory for the child.
    env:
        Full child environment, or ``None`` to inherit.
    timeout_s:
        Kill the child after this many seconds.  ``None`` or ``0`` waits
        indefinitely.

    Raises
    ------
    ProcessStartFailure
        The program could not be started.
    ProcessExecutionFailure
        Non-zero exit, or killed after the timeout.
    asyncio.CancelledError
        The awaiting task was cancelled; the child is killed first.
    """
    start = time.perf_counter()
    try:
        proc = await asyncio.create_subprocess_exec(*argv, cwd=str(cwd), env=env)
    except OSError as exc:
        logger.error("Fail to execute: %s. The error is: %s", argv, exc)
        raise ProcessStartFailure(argv, str(exc)) from exc

    try:
        if timeout_s:
            exit_code = await asyncio.wait_for(proc.wait(), timeout=timeout_s)
        else:
            exit_code = await proc.wait()
    except asyncio.TimeoutError:
        await _kill(proc)
        logger.error("%s timed out after %ss", argv[:2], timeout_s)
        raise ProcessExecutionFailure(argv, proc.returncode or -1, killed=True)
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    elapsed = int((time.perf_counter() - start) * 1000)
    if exit_code != 0:
        logger.error("%s failed (rc=%d)", " ".join(argv[:2]), exit_code)
        raise ProcessExecutionFailure(argv, exit_code)

    return RunResult(command=argv, exit_code=exit_code, duration_ms=elapsed)
