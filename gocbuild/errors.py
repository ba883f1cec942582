"""gocbuild error hierarchy.

Every error carries typed fields (not just a message string),
supports ``to_dict()`` for structured logging, and has a readable
``__str__``.  Library code raises these; only the CLI decides on exit
codes.
"""

from __future__ import annotations


class GocError(Exception):
    """Base error for all gocbuild failures."""

    def __init__(self, message: str, *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.message, **self.detail}

    def __str__(self) -> str:
        return self.message


class InvalidPackageSpec(GocError):
    """Only the current-directory package ``.`` may be built or run."""

    def __init__(self, package_spec: str) -> None:
        self.package_spec = package_spec
        super().__init__(
            f"Invalid package {package_spec!r}: only '.' is supported",
            detail={"package_spec": package_spec},
        )


class CallSequenceViolation(GocError):
    """An operation was called in the wrong lifecycle state."""

    def __init__(self, operation: str, state: str, *, expected: str = "") -> None:
        self.operation = operation
        self.state = state
        self.expected = expected
        msg = f"Cannot call {operation}() in state {state}"
        if expected:
            msg += f" (expected {expected})"
        super().__init__(
            msg,
            detail={"operation": operation, "state": state, "expected": expected},
        )


class RelocationFailure(GocError):
    """Copying the project or listing its packages failed."""

    def __init__(self, reason: str, *, path: str | None = None) -> None:
        self.reason = reason
        self.path = path or ""
        detail: dict = {"reason": reason}
        if path:
            detail["path"] = path
        msg = f"Workspace relocation failed: {reason}"
        if path:
            msg += f" (path={path!r})"
        super().__init__(msg, detail=detail)


class ProcessStartFailure(GocError):
    """The toolchain process could not be started."""

    def __init__(self, command: list[str], reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(
            f"Fail to execute {' '.join(command)}: {reason}",
            detail={"command": command, "reason": reason},
        )


class ProcessExecutionFailure(GocError):
    """The toolchain process exited non-zero or was killed."""

    def __init__(
        self,
        command: list[str],
        exit_code: int,
        *,
        killed: bool = False,
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.killed = killed
        if killed:
            msg = f"{' '.join(command[:2])} killed after timeout"
        else:
            msg = f"{' '.join(command[:2])} failed with exit code {exit_code}"
        super().__init__(
            msg,
            detail={"command": command, "exit_code": exit_code, "killed": killed},
        )


class InvalidHost(GocError):
    """The coverage center URL could not be parsed."""

    def __init__(self, host: str) -> None:
        self.host = host
        super().__init__(f"Parse url {host!r} failed", detail={"host": host})


class NetworkTransientFailure(GocError):
    """The listing request kept failing at the network level."""

    def __init__(self, url: str, reason: str, *, attempts: int) -> None:
        self.url = url
        self.reason = reason
        self.attempts = attempts
        super().__init__(
            f"goc list failed after {attempts} attempt(s): {reason}",
            detail={"url": url, "reason": reason, "attempts": attempts},
        )


class ResponseDecodeFailure(GocError):
    """The listing response body was not the expected JSON document."""

    def __init__(self, reason: str, *, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        detail: dict = {"reason": reason}
        if status_code is not None:
            detail["status_code"] = status_code
        super().__init__(f"goc list failed: json unmarshal failed: {reason}", detail=detail)
