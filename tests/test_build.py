"""Tests for gocbuild/build.py -- validation, output path, lifecycle, toolchain argv."""

import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from gocbuild.build import (
    Build,
    BuildState,
    resolve_output_path,
    validate_package_spec,
)
from gocbuild.errors import CallSequenceViolation, InvalidPackageSpec, ProcessExecutionFailure
from gocbuild.runner import RunResult
from gocbuild.workspace import Relocation


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _relocation(tmp_dir: Path, *, is_mod: bool, new_gopath: str = "") -> Relocation:
    return Relocation(
        tmp_dir=str(tmp_dir),
        tmp_working_dir=str(tmp_dir / "src" / "app"),
        root=str(tmp_dir.parent),
        is_mod=is_mod,
        new_gopath=new_gopath,
        ori_gopath="/gopath" if new_gopath else "",
    )


async def _relocated_build(tmp_path: Path, *, is_mod: bool = True, new_gopath: str = "", **kwargs) -> Build:
    wd = tmp_path / "work" / "my_app"
    wd.mkdir(parents=True)
    b = Build(working_dir=wd, **kwargs)
    reloc = _relocation(tmp_path / "goc-build-x", is_mod=is_mod, new_gopath=new_gopath)
    with patch("gocbuild.build.relocate", new_callable=AsyncMock, return_value=reloc):
        await b.relocate()
    return b


def _ok(argv, **kwargs):
    return RunResult(command=argv, exit_code=0)


# ---------------------------------------------------------------------------
# Tests: validate_package_spec
# ---------------------------------------------------------------------------


class TestValidatePackageSpec:
    def test_dot_accepted(self):
        assert validate_package_spec(".") is True

    @pytest.mark.parametrize("spec", ["./sub", "./...", "github.com/x/y", "", "..", " ."])
    def test_everything_else_rejected(self, spec):
        assert validate_package_spec(spec) is False

    def test_constructor_rejects_before_relocation(self, tmp_root):
        """Scenario: ``./sub`` fails immediately and creates no temp dir."""
        with patch("gocbuild.build.relocate", new_callable=AsyncMock) as mock_reloc:
            with pytest.raises(InvalidPackageSpec) as exc_info:
                Build("-v", "./sub")
        mock_reloc.assert_not_called()
        assert exc_info.value.package_spec == "./sub"
        assert list(tmp_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_create_rejects_before_relocation(self, tmp_root):
        with patch("gocbuild.build.relocate", new_callable=AsyncMock) as mock_reloc:
            with pytest.raises(InvalidPackageSpec):
                await Build.create("", "./...")
        mock_reloc.assert_not_called()


# ---------------------------------------------------------------------------
# Tests: resolve_output_path
# ---------------------------------------------------------------------------


class TestResolveOutputPath:
    def test_legacy_uses_directory_name(self):
        """Scenario: legacy project at R/src/myapp → R/src/myapp/myapp."""
        assert resolve_output_path("/R/src/myapp", False) == "/R/src/myapp/myapp"

    def test_legacy_keeps_underscores(self):
        assert resolve_output_path("/R/src/my_app", False) == "/R/src/my_app/my_app"

    def test_module_replaces_every_underscore(self):
        assert resolve_output_path("/w/my_app_v_2", True) == "/w/my_app_v_2/my-app-v-2"

    def test_explicit_absolute_dir(self):
        assert resolve_output_path("/w/my_app", True, "/out") == "/out"
        assert resolve_output_path("/w/my_app", False, "/out") == "/out"

    def test_explicit_relative_dir_made_absolute(self):
        """Scenario: explicit relative output → absolute, independent of layout."""
        mod = resolve_output_path("/w/my_app", True, "bin/app")
        legacy = resolve_output_path("/w/my_app", False, "bin/app")
        assert mod == legacy == os.path.normpath("/w/my_app/bin/app")
        assert os.path.isabs(mod)

    def test_explicit_dir_normalised(self):
        assert resolve_output_path("/w/my_app", True, "../out/./app") == os.path.normpath("/w/out/app")

    def test_deterministic(self):
        first = resolve_output_path("/w/my_app", True)
        assert all(resolve_output_path("/w/my_app", True) == first for _ in range(5))


# ---------------------------------------------------------------------------
# Tests: lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_initial_state(self, tmp_path):
        b = Build("-v -race", working_dir=tmp_path)
        assert b.state is BuildState.VALIDATED
        assert b.build_flags == ["-v", "-race"]
        assert b.tmp_dir == ""
        assert b.target == ""

    def test_determine_target_before_relocation(self, tmp_path):
        b = Build(working_dir=tmp_path)
        with pytest.raises(CallSequenceViolation) as exc_info:
            b.determine_target()
        assert exc_info.value.operation == "determine_target"
        assert b.target == ""
        assert b.state is BuildState.VALIDATED

    @pytest.mark.asyncio
    async def test_build_before_target(self, tmp_path):
        b = await _relocated_build(tmp_path)
        with patch("gocbuild.build.invoke", new_callable=AsyncMock) as mock_invoke:
            with pytest.raises(CallSequenceViolation):
                await b.build()
            with pytest.raises(CallSequenceViolation):
                await b.run()
        mock_invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_relocate_twice(self, tmp_path):
        b = await _relocated_build(tmp_path)
        with pytest.raises(CallSequenceViolation):
            await b.relocate()

    @pytest.mark.asyncio
    async def test_relocate_copies_layout(self, tmp_path):
        b = await _relocated_build(tmp_path, is_mod=False, new_gopath="/tmp/x:/gopath")
        assert b.state is BuildState.RELOCATED
        assert b.is_mod is False
        assert b.new_gopath == "/tmp/x:/gopath"
        assert b.ori_gopath == "/gopath"
        assert b.tmp_working_dir.endswith(os.path.join("src", "app"))

    @pytest.mark.asyncio
    async def test_module_target(self, tmp_path):
        """Scenario: module project in my_app → <cwd>/my-app."""
        b = await _relocated_build(tmp_path, is_mod=True)
        target = b.determine_target()
        assert target == str(b.working_dir / "my-app")
        assert b.state is BuildState.PATH_RESOLVED

    @pytest.mark.asyncio
    async def test_target_computed_once(self, tmp_path):
        b = await _relocated_build(tmp_path)
        first = b.determine_target()
        with pytest.raises(CallSequenceViolation):
            b.determine_target("/elsewhere")
        assert b.target == first

    @pytest.mark.asyncio
    async def test_create_runs_all_steps(self, tmp_path):
        wd = tmp_path / "proj"
        wd.mkdir()
        reloc = _relocation(tmp_path / "goc-build-y", is_mod=True)
        with patch("gocbuild.build.relocate", new_callable=AsyncMock, return_value=reloc) as mock_reloc:
            b = await Build.create("-v", ".", "/out/app", working_dir=wd)
        mock_reloc.assert_awaited_once_with(wd.resolve(), ["-v"])
        assert b.target == os.path.normpath("/out/app")
        assert b.state is BuildState.PATH_RESOLVED


# ---------------------------------------------------------------------------
# Tests: build / run
# ---------------------------------------------------------------------------


class TestToolchain:
    @pytest.mark.asyncio
    async def test_build_appends_output_once(self, tmp_path):
        """Scenario: -v with target /out/app → ``-v -o /out/app``."""
        b = await _relocated_build(tmp_path, build_flags="-v")
        b.determine_target("/out/app")

        with patch("gocbuild.build.invoke", new_callable=AsyncMock, side_effect=_ok) as mock_invoke:
            await b.build()
            await b.build()

        for call in mock_invoke.await_args_list:
            argv = call.args[0]
            assert argv[1:] == ["build", "-v", "-o", os.path.normpath("/out/app"), "."]
            assert argv.count("-o") == 1
            assert call.kwargs["cwd"] == b.tmp_working_dir
        assert b.build_flags == ["-v"]
        assert b.state is BuildState.BUILT

    @pytest.mark.asyncio
    async def test_build_module_inherits_env(self, tmp_path):
        b = await _relocated_build(tmp_path, is_mod=True)
        b.determine_target()
        with patch("gocbuild.build.invoke", new_callable=AsyncMock, side_effect=_ok) as mock_invoke:
            await b.build()
        assert mock_invoke.await_args.kwargs["env"] is None

    @pytest.mark.asyncio
    async def test_build_legacy_overrides_gopath(self, tmp_path):
        b = await _relocated_build(tmp_path, is_mod=False, new_gopath="/tmp/goc:/gopath")
        b.determine_target()
        with patch("gocbuild.build.invoke", new_callable=AsyncMock, side_effect=_ok) as mock_invoke:
            await b.build()
        env = mock_invoke.await_args.kwargs["env"]
        assert env["GOPATH"] == "/tmp/goc:/gopath"
        assert os.environ.get("GOPATH") != "/tmp/goc:/gopath"

    @pytest.mark.asyncio
    async def test_build_failure_propagates(self, tmp_path):
        b = await _relocated_build(tmp_path)
        b.determine_target()
        err = ProcessExecutionFailure(["go", "build"], 2)
        with patch("gocbuild.build.invoke", new_callable=AsyncMock, side_effect=err):
            with pytest.raises(ProcessExecutionFailure) as exc_info:
                await b.build()
        assert exc_info.value.exit_code == 2
        assert b.state is BuildState.PATH_RESOLVED

    @pytest.mark.asyncio
    async def test_run_command(self, tmp_path):
        b = await _relocated_build(
            tmp_path, build_flags="-race", run_exec="sudo", run_arguments=["--port", "80"],
        )
        b.determine_target()
        with patch("gocbuild.build.invoke", new_callable=AsyncMock, side_effect=_ok) as mock_invoke:
            await b.run()
        argv = mock_invoke.await_args.args[0]
        assert argv[1:] == ["run", "-race", "-exec", "sudo", ".", "--port", "80"]
        assert b.state is BuildState.RAN

    @pytest.mark.asyncio
    async def test_run_without_exec(self, tmp_path):
        b = await _relocated_build(tmp_path)
        b.determine_target()
        assert b.run_command()[1:] == ["run", "."]

    @pytest.mark.asyncio
    async def test_run_failure_is_returned_not_fatal(self, tmp_path):
        b = await _relocated_build(tmp_path)
        b.determine_target()
        err = ProcessExecutionFailure(["go", "run"], 1)
        with patch("gocbuild.build.invoke", new_callable=AsyncMock, side_effect=err):
            with pytest.raises(ProcessExecutionFailure):
                await b.run()

    @pytest.mark.asyncio
    async def test_timeout_from_settings(self, tmp_path, monkeypatch):
        from gocbuild.config import settings

        monkeypatch.setattr(settings, "BUILD_TIMEOUT_S", 30)
        b = await _relocated_build(tmp_path)
        b.determine_target()
        with patch("gocbuild.build.invoke", new_callable=AsyncMock, side_effect=_ok) as mock_invoke:
            await b.build()
            await b.build(timeout_s=5)
        assert mock_invoke.await_args_list[0].kwargs["timeout_s"] == 30
        assert mock_invoke.await_args_list[1].kwargs["timeout_s"] == 5

    def test_cleanup_before_relocation_is_noop(self, tmp_path):
        with patch("gocbuild.build.cleanup_workspace") as mock_clean:
            Build(working_dir=tmp_path).cleanup()
        mock_clean.assert_not_called()
