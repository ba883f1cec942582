"""gocbuild command-line front end.

    gocbuild build [--buildflags S] [--output DIR] [PACKAGE]
    gocbuild run   [--buildflags S] [--exec PROG] [PACKAGE] [ARGS...]
    gocbuild list  [--center URL] [--wide]

This is the only place that turns errors into exit codes.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from gocbuild.build import CURRENT_PACKAGE, Build
from gocbuild.client import AgentClient, render_agents
from gocbuild.config import VERSION, settings
from gocbuild.errors import GocError, ProcessExecutionFailure
from gocbuild.log import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gocbuild",
        description="Build or run a Go project from an isolated temporary workspace",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--log-level", default=settings.LOG_LEVEL,
        help="Logging level (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_build = sub.add_parser("build", help="go build in a temp workspace")
    p_build.add_argument("--buildflags", default="", help="Flags passed to go build")
    p_build.add_argument("-o", "--output", default="", help="Output binary path")
    p_build.add_argument(
        "--debug", action="store_true", default=settings.DEBUG,
        help="Keep the temp workspace after building",
    )
    p_build.add_argument("package", nargs="?", default=CURRENT_PACKAGE)

    p_run = sub.add_parser("run", help="go run in a temp workspace")
    p_run.add_argument("--buildflags", default="", help="Flags passed to go run")
    p_run.add_argument("--exec", dest="run_exec", default="", help="Program for go run -exec")
    p_run.add_argument(
        "--debug", action="store_true", default=settings.DEBUG,
        help="Keep the temp workspace after running",
    )
    p_run.add_argument("package", nargs="?", default=CURRENT_PACKAGE)
    p_run.add_argument("arguments", nargs=argparse.REMAINDER, help="Arguments for the program")

    p_list = sub.add_parser("list", help="List covered agents registered with a center")
    p_list.add_argument("--center", default=settings.CENTER_HOST, help="Coverage center URL")
    p_list.add_argument("--wide", action="store_true", help="Show hostname and pid")

    return parser


async def _build(args: argparse.Namespace) -> None:
    b = await Build.create(args.buildflags, args.package, args.output)
    try:
        await b.build()
    finally:
        if not args.debug:
            b.cleanup()


async def _run(args: argparse.Namespace) -> None:
    b = await Build.create(
        args.buildflags, args.package,
        run_exec=args.run_exec, run_arguments=args.arguments,
    )
    try:
        await b.run()
    finally:
        if not args.debug:
            b.cleanup()


async def _list(args: argparse.Namespace) -> None:
    async with AgentClient(args.center) as client:
        agents = await client.list_agents()
    render_agents(agents, wide=args.wide)


_COMMANDS = {"build": _build, "run": _run, "list": _list}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse *argv*; for ``run``, everything after the first ``--`` goes to the program.

    ``gocbuild run -- -port 80`` builds ``.`` and passes ``-port 80``.  A ``--``
    that follows program arguments is passed through as an argument.
    """
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    if "--" not in argv:
        return parser.parse_args(argv)

    split = argv.index("--")
    args = parser.parse_args(argv[:split])
    if args.command != "run":
        return parser.parse_args(argv)
    tail = argv[split + 1:]
    args.arguments = [*args.arguments, "--", *tail] if args.arguments else tail
    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, settings.LOG_FILE)

    try:
        asyncio.run(_COMMANDS[args.command](args))
    except ProcessExecutionFailure as exc:
        logger.error("%s", exc)
        return exc.exit_code if exc.exit_code > 0 else 1
    except GocError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
