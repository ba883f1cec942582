"""Coverage center client -- list the covered agents registered with a center.

``AgentClient.list_agents()`` returns decoded agents or raises; it never
exits the process.  ``render_agents()`` prints them as a borderless table.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from rich.console import Console
from rich.table import Table

from gocbuild.config import settings
from gocbuild.errors import InvalidHost, NetworkTransientFailure, ResponseDecodeFailure

logger = logging.getLogger(__name__)

COVER_AGENTS_LIST_API = "/v2/rpcagents"

# Columns that precede CMD in narrow mode take len(id) + len(remoteip)
# plus this many characters of padding.
NARROW_PREFIX_PAD = 9
MIN_CMD_WIDTH = 16

# Blank spaces between table columns
COLUMN_GAP = 3

WidthProvider = Callable[[], "int | None"]


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class CoveredAgent(BaseModel):
    """A running instrumented process registered with the center."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = ""
    remoteip: str = ""
    hostname: str = ""
    cmdline: str = ""
    pid: str = ""


class ListAgentsResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    items: list[CoveredAgent] = []


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class AgentClient:
    """Talks to a coverage center at *host* (e.g. ``http://127.0.0.1:7777``)."""

    def __init__(self, host: str, *, http_client: httpx.AsyncClient | None = None) -> None:
        parts = urlsplit(host)
        if not parts.scheme or not parts.netloc:
            raise InvalidHost(host)
        self.host = host.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=settings.LIST_TIMEOUT_S)
        self._owns_client = http_client is None

    async def __aenter__(self) -> AgentClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, url: str) -> httpx.Response:
        return await self._client.get(url)

    async def list_agents(self) -> list[CoveredAgent]:
        """Fetch all registered agents.

        A transport-level failure is retried exactly once.

        Raises
        ------
        NetworkTransientFailure
            Both attempts failed at the network level.
        ResponseDecodeFailure
            The body is not a valid agent list.
        """
        url = f"{self.host}{COVER_AGENTS_LIST_API}"
        try:
            response = await self._get(url)
        except httpx.TransportError as exc:
            logger.warning("goc list: %s, retrying once", exc)
            try:
                response = await self._get(url)
            except httpx.TransportError as retry_exc:
                raise NetworkTransientFailure(url, str(retry_exc), attempts=2) from retry_exc

        try:
            return ListAgentsResponse.model_validate_json(response.content).items
        except ValidationError as exc:
            raise ResponseDecodeFailure(
                f"{exc.error_count()} validation error(s): {exc.errors()[0]['msg']}",
                status_code=response.status_code,
            ) from exc


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def terminal_width() -> int | None:
    """Width of the terminal attached to stdin, or ``None``."""
    try:
        return os.get_terminal_size(sys.stdin.fileno()).columns
    except (OSError, ValueError, AttributeError):
        return None


def simple_cmdline(pre_len: int, cmdline: str, width: int | None) -> str:
    """Clip *cmdline* so ``pre_len + len(result)`` fits in *width*.

    At least ``MIN_CMD_WIDTH`` characters are kept when the width is
    unknown or too small.
    """
    if width is None or width <= pre_len + MIN_CMD_WIDTH:
        width = pre_len + MIN_CMD_WIDTH
    if len(cmdline) > width - pre_len:
        return cmdline[: width - pre_len]
    return cmdline


def agent_rows(
    agents: list[CoveredAgent],
    *,
    wide: bool = False,
    width_provider: WidthProvider = terminal_width,
) -> tuple[list[str], list[list[str]]]:
    """Headers and rows for *agents*; narrow rows carry a clipped command."""
    if wide:
        headers = ["ID", "REMOTEIP", "HOSTNAME", "PID", "CMD"]
        rows = [[a.id, a.remoteip, a.hostname, a.pid, a.cmdline] for a in agents]
        return headers, rows

    headers = ["ID", "REMOTEIP", "CMD"]
    width = width_provider()
    rows = []
    for a in agents:
        pre_len = len(a.id) + len(a.remoteip) + NARROW_PREFIX_PAD
        rows.append([a.id, a.remoteip, simple_cmdline(pre_len, a.cmdline, width)])
    return headers, rows


def table_width(headers: list[str], rows: list[list[str]]) -> int:
    """Width of the widest cell per column plus the gaps between columns."""
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    return sum(widths) + COLUMN_GAP * (len(widths) - 1)


def render_agents(
    agents: list[CoveredAgent],
    *,
    wide: bool = False,
    console: Console | None = None,
    width_provider: WidthProvider = terminal_width,
) -> None:
    """Print *agents* as a borderless, left-aligned table.

    The table is always laid out at its natural width and never cropped,
    whatever the console width; only the narrow-mode CMD clip (done in
    ``agent_rows``) shortens a cell.
    """
    headers, rows = agent_rows(agents, wide=wide, width_provider=width_provider)

    table = Table(
        box=None,
        show_edge=False,
        pad_edge=False,
        padding=(0, COLUMN_GAP, 0, 0),
        header_style="",
        width=table_width(headers, rows),
    )
    for header in headers:
        table.add_column(header, justify="left", no_wrap=True, overflow="ignore")
    for row in rows:
        table.add_row(*row)

    (console or Console()).print(table, crop=False)
