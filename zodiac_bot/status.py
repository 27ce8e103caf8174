"""Configuration / health checks and status table rendering."""

import asyncio
import tomllib
from dataclasses import dataclass
from pathlib import Path

import asyncpg
from rich.table import Table

from zodiac_bot.config import Settings, find_project_config
from zodiac_bot.content import ContentLibrary
from zodiac_bot._errors import ConfigError


_PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def get_version() -> str:
    try:
        return tomllib.loads(_PYPROJECT.read_text())["project"]["version"]
    except (OSError, KeyError, tomllib.TOMLDecodeError):
        return "unknown"


@dataclass
class StatusInfo:
    version: str
    prefix: str
    discord: str  # "configured" | "missing token"
    database: str  # "online" | "offline" | "not configured"
    database_detail: str
    content: str  # "complete" | "N gaps" | "unreadable"
    content_path: str
    project_config: str | None  # path to .zodiac-bot/settings.json or None


async def _probe_database(dsn: str, timeout: float) -> tuple[str, str]:
    try:
        conn = await asyncpg.connect(dsn, timeout=timeout)
    except Exception as e:
        return "offline", str(e)
    try:
        server = await conn.fetchval("SHOW server_version")
        return "online", f"PostgreSQL {server}"
    finally:
        await conn.close()


def get_status(settings: Settings) -> StatusInfo:
    """Gather status into a plain dataclass (no display side-effects)."""

    # -- database --
    if settings.db_connection:
        database, database_detail = asyncio.run(
            _probe_database(settings.db_connection, settings.db_timeout)
        )
    else:
        database, database_detail = "not configured", "set DB_CONNECTION"

    # -- content --
    try:
        gaps = ContentLibrary.load(settings.content_path).missing()
        content = "complete" if not gaps else f"{len(gaps)} gaps"
    except ConfigError:
        content = "unreadable"

    project_config = find_project_config()
    return StatusInfo(
        version=get_version(),
        prefix=settings.command_prefix,
        discord="configured" if settings.discord_token else "missing token",
        database=database,
        database_detail=database_detail,
        content=content,
        content_path=settings.content_path,
        project_config=str(project_config) if project_config else None,
    )


def _style(value: str, good: str) -> str:
    color = "success" if value == good else "error"
    return f"[{color}]{value}[/{color}]"


def render_status_table(info: StatusInfo) -> Table:
    table = Table(title=f"zodiac-bot v{info.version}", border_style="accent", expand=False)
    table.add_column("Component", style="accent")
    table.add_column("Status")
    table.add_column("Detail", style="hint")
    table.add_row("Prefix", info.prefix, "")
    table.add_row("Discord", _style(info.discord, "configured"), "")
    table.add_row("Database", _style(info.database, "online"), info.database_detail)
    table.add_row("Content", _style(info.content, "complete"), info.content_path)
    if info.project_config:
        table.add_row("Project config", "found", info.project_config)
    return table
