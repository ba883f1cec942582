"""Build and run Go projects from an isolated temporary workspace.

Public API
----------
Descriptor::

    Build, BuildState, validate_package_spec, resolve_output_path

Workspace::

    Relocation, relocate, cleanup_workspace, tmp_folder_name, find_module_root

Packages::

    Package, ModuleInfo, list_packages, parse_list_output

Runner::

    invoke, RunResult, toolchain_env

Coverage center client::

    AgentClient, CoveredAgent, render_agents, simple_cmdline

Errors::

    GocError, InvalidPackageSpec, CallSequenceViolation, RelocationFailure,
    ProcessStartFailure, ProcessExecutionFailure, InvalidHost,
    NetworkTransientFailure, ResponseDecodeFailure
"""

from gocbuild.build import Build, BuildState, resolve_output_path, validate_package_spec
from gocbuild.client import AgentClient, CoveredAgent, render_agents, simple_cmdline
from gocbuild.errors import (
    CallSequenceViolation,
    GocError,
    InvalidHost,
    InvalidPackageSpec,
    NetworkTransientFailure,
    ProcessExecutionFailure,
    ProcessStartFailure,
    RelocationFailure,
    ResponseDecodeFailure,
)
from gocbuild.packages import ModuleInfo, Package, list_packages, parse_list_output
from gocbuild.runner import RunResult, invoke, toolchain_env
from gocbuild.workspace import (
    Relocation,
    cleanup_workspace,
    find_module_root,
    relocate,
    tmp_folder_name,
)

__all__ = [
    "AgentClient",
    "Build",
    "BuildState",
    "CallSequenceViolation",
    "CoveredAgent",
    "GocError",
    "InvalidHost",
    "InvalidPackageSpec",
    "ModuleInfo",
    "NetworkTransientFailure",
    "Package",
    "ProcessExecutionFailure",
    "ProcessStartFailure",
    "Relocation",
    "RelocationFailure",
    "ResponseDecodeFailure",
    "RunResult",
    "cleanup_workspace",
    "find_module_root",
    "invoke",
    "list_packages",
    "parse_list_output",
    "relocate",
    "render_agents",
    "resolve_output_path",
    "simple_cmdline",
    "tmp_folder_name",
    "toolchain_env",
    "validate_package_spec",
]
