import asyncio
import logging

import discord
import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory
from rich.logging import RichHandler

from zodiac_bot._commands import COMMANDS, CommandContext, dispatch
from zodiac_bot._errors import ConfigError, StorageError
from zodiac_bot.config import settings, DATA_DIR
from zodiac_bot.content import ContentLibrary
from zodiac_bot.deps import BotDeps
from zodiac_bot.discord_client import ZodiacClient
from zodiac_bot.display import console, set_theme, display_error, display_info, display_reply, PROMPT_CHAR
from zodiac_bot.registry import Registry
from zodiac_bot.status import get_status, get_version, render_status_table
from zodiac_bot.store import MemoryPreferenceStore, PostgresPreferenceStore
from zodiac_bot.telemetry import setup_tracing

logger = logging.getLogger(__name__)

# Exit codes for the service supervisor (systemd, docker restart policy, ...)
EXIT_CONFIG = 1
EXIT_CONNECTION_LOST = 2

app = typer.Typer(
    help="Zodiac Bot - remembers your sign, serves your car, track and monthly outlook",
    context_settings={"help_option_names": ["--help", "-h"]},
)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_content() -> ContentLibrary:
    try:
        return ContentLibrary.load(settings.content_path)
    except ConfigError as e:
        display_error(str(e), hint="Check content_path / ZODIAC_BOT_CONTENT_PATH.")
        raise typer.Exit(code=EXIT_CONFIG)


async def _open_registry() -> Registry:
    return await Registry.open(
        settings.db_connection,
        min_size=settings.db_pool_min,
        max_size=settings.db_pool_max,
        command_timeout=settings.db_timeout,
        keepalive_interval=settings.keepalive_interval,
    )


async def serve(content: ContentLibrary) -> int:
    """Run the Discord client until it stops or the database handle is lost.

    Returns the process exit code. A lost database connection is not
    recovered here: the client is closed and the caller exits non-zero so
    the service supervisor can restart the bot.
    """
    try:
        registry = await _open_registry()
    except StorageError as e:
        display_error(str(e), hint="Check DB_CONNECTION and that PostgreSQL is reachable.")
        return EXIT_CONFIG

    deps = BotDeps(
        store=PostgresPreferenceStore(registry),
        content=content,
        command_prefix=settings.command_prefix,
    )
    client = ZodiacClient(deps)
    bot_task = asyncio.create_task(client.start(settings.discord_token), name="zodiac-discord")
    lost_task = asyncio.create_task(registry.wait_lost(), name="zodiac-db-watch")

    try:
        done, _ = await asyncio.wait({bot_task, lost_task}, return_when=asyncio.FIRST_COMPLETED)
        if lost_task in done:
            logger.error("database connection lost (%s); shutting down", lost_task.result())
            return EXIT_CONNECTION_LOST
        bot_task.result()
        return 0
    except discord.LoginFailure as e:
        display_error(f"Discord login failed: {e}", hint="Check DISCORD_TOKEN.")
        return EXIT_CONFIG
    finally:
        if not client.is_closed():
            await client.close()
        lost_task.cancel()
        await asyncio.gather(bot_task, lost_task, return_exceptions=True)
        await registry.close()


async def console_loop(user_id: str, use_memory: bool) -> None:
    """Local REPL: each line is dispatched exactly like a chat message."""
    content = _load_content()

    registry = None
    if use_memory or not settings.db_connection:
        if not use_memory:
            console.print("[warning]DB_CONNECTION not set, using the in-memory store[/warning]")
        store = MemoryPreferenceStore()
    else:
        registry = await _open_registry()
        store = PostgresPreferenceStore(registry)

    deps = BotDeps(
        store=store,
        content=content,
        command_prefix=settings.command_prefix,
    )
    ctx = CommandContext(user_id=user_id, deps=deps, mention=f"@{user_id}")

    prefix = settings.command_prefix
    session = PromptSession(
        history=FileHistory(str(DATA_DIR / "history.txt")),
        completer=WordCompleter([f"{prefix}{name}" for name in COMMANDS], sentence=True),
        complete_while_typing=False,
    )
    display_info(f"zodiac-bot console as {user_id} ({store.backend} store). Type {prefix}help, or exit.")

    try:
        while True:
            try:
                text = await session.prompt_async(f"zodiac {PROMPT_CHAR} ")
            except (EOFError, KeyboardInterrupt):
                break
            if text.strip().lower() in ("exit", "quit"):
                break
            if not text.strip():
                continue

            reply = await dispatch(text, ctx)
            if reply is None:
                console.print("[hint](no reply)[/hint]")
                continue
            display_reply(reply.text, title=reply.title, image=reply.image)
    finally:
        if registry is not None:
            await registry.close()


@app.command()
def run():
    """Connect to PostgreSQL and Discord, then serve commands."""
    try:
        settings.require_runtime()
    except ConfigError as e:
        display_error(str(e))
        raise typer.Exit(code=EXIT_CONFIG)

    _setup_logging(settings.log_level)
    if settings.tracing:
        setup_tracing(get_version())
    content = _load_content()

    try:
        code = asyncio.run(serve(content))
    except KeyboardInterrupt:
        code = 0
    raise typer.Exit(code=code)


@app.command("console")
def console_command(
    user: str = typer.Option("local-user", "--user", "-u", help="User id to act as"),
    memory: bool = typer.Option(False, "--memory", "-m", help="Use the in-memory store instead of PostgreSQL"),
    theme: str = typer.Option(None, "--theme", "-t", help="Color theme: dark or light"),
):
    """Chat with the bot locally, without Discord."""
    if theme:
        settings.theme = theme
        set_theme(theme)
    _setup_logging(settings.log_level)
    try:
        asyncio.run(console_loop(user, memory))
    except StorageError as e:
        display_error(str(e), hint="Check DB_CONNECTION, or pass --memory.")
        raise typer.Exit(code=EXIT_CONFIG)
    except KeyboardInterrupt:
        pass


@app.command()
def status():
    """Show configuration and backend health."""
    info = get_status(settings)
    console.print(render_status_table(info))


if __name__ == "__main__":
    app()
