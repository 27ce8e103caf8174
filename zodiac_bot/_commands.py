"""Command registry, handlers, and dispatch for inbound chat messages."""

from __future__ import annotations

import logging
from collections.abc import Callable, Awaitable
from dataclasses import dataclass
from types import MappingProxyType

from opentelemetry import trace

from zodiac_bot._errors import ContentNotFound, InvalidSign, StorageError
from zodiac_bot.content import Category
from zodiac_bot.deps import BotDeps
from zodiac_bot.signs import normalize

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


# -- Types -----------------------------------------------------------------

@dataclass(frozen=True)
class CommandContext:
    """Per-invocation input passed to every command handler."""

    user_id: str
    deps: BotDeps
    mention: str = ""  # overrides the default "<@user_id>" mention

    @property
    def who(self) -> str:
        return self.mention or f"<@{self.user_id}>"


@dataclass(frozen=True)
class Reply:
    """What the frontend should send back.

    ``as_reply`` replies to the author's message; otherwise the text is
    posted to the channel.
    """

    text: str
    title: str | None = None
    image: str | None = None
    as_reply: bool = True


@dataclass(frozen=True)
class BotCommand:
    """A registered command."""

    name: str
    description: str
    handler: Callable[[CommandContext, str], Awaitable[Reply]]


# -- Handlers --------------------------------------------------------------


def _not_set(ctx: CommandContext) -> Reply:
    prefix = ctx.deps.command_prefix
    return Reply(f"{ctx.who}, your sign is not set! Set your sign with {prefix}set <Sign>")


async def _cmd_help(ctx: CommandContext, args: str) -> Reply:
    """Static help bundle plus the command list."""
    bundle = ctx.deps.content.help_bundle()
    prefix = ctx.deps.command_prefix
    lines = [bundle.text] if bundle.text else []
    lines.extend(f"{prefix}{cmd.name} - {cmd.description}" for cmd in COMMANDS.values())
    return Reply("\n".join(lines), title=bundle.title, image=bundle.image, as_reply=False)


async def _cmd_sign(ctx: CommandContext, args: str) -> Reply:
    sign = await ctx.deps.store.get(ctx.user_id)
    if sign is None:
        return _not_set(ctx)
    return Reply(f"{ctx.who}, your sign is {sign}")


async def _cmd_set(ctx: CommandContext, args: str) -> Reply:
    """Validate and store the user's sign."""
    prefix = ctx.deps.command_prefix
    if not args.strip():
        return Reply(f"{ctx.who}, usage: {prefix}set <Sign> (e.g. {prefix}set Leo)")
    try:
        sign = normalize(args)
    except InvalidSign as e:
        return Reply(
            f'{ctx.who}, "{e.raw.strip()}" is not a valid sign. '
            f"Try one of: Aries, Taurus, Gemini, Cancer, Leo, Virgo, Libra, "
            f"Scorpio, Sagittarius, Capricorn, Aquarius, Pisces."
        )
    await ctx.deps.store.set(ctx.user_id, sign)
    return Reply(f"{ctx.who}, your sign is now {sign}")


def _content_command(category: Category) -> Callable[[CommandContext, str], Awaitable[Reply]]:
    async def _cmd(ctx: CommandContext, args: str) -> Reply:
        sign = await ctx.deps.store.get(ctx.user_id)
        if sign is None:
            return _not_set(ctx)
        try:
            bundle = ctx.deps.content.resolve(sign, category)
        except ContentNotFound:
            logger.warning("content: no %s bundle for %s", category.value, sign)
            return Reply(f"{ctx.who}, I don't have {category.value} content for {sign} yet.")
        return Reply(bundle.text, title=bundle.title, image=bundle.image)

    _cmd.__name__ = f"_cmd_{category.value}"
    _cmd.__doc__ = f"Show the {category.value} bundle for the user's sign."
    return _cmd


async def _cmd_deleteme(ctx: CommandContext, args: str) -> Reply:
    await ctx.deps.store.delete(ctx.user_id)
    return Reply(f"{ctx.who}, your sign has been deleted.")


def _canned(text: str) -> Callable[[CommandContext, str], Awaitable[Reply]]:
    async def _cmd(ctx: CommandContext, args: str) -> Reply:
        return Reply(text)

    return _cmd


# -- Registry --------------------------------------------------------------

COMMANDS: MappingProxyType[str, BotCommand] = MappingProxyType({
    "help": BotCommand("help", "Show this help", _cmd_help),
    "sign": BotCommand("sign", "Show your stored sign", _cmd_sign),
    "set": BotCommand("set", "Store your sign, e.g. set Leo", _cmd_set),
    "car": BotCommand("car", "The car that matches your sign", _content_command(Category.CAR)),
    "track": BotCommand("track", "The race track that matches your sign", _content_command(Category.TRACK)),
    "monthly": BotCommand("monthly", "Your monthly outlook", _content_command(Category.MONTHLY)),
    "deleteme": BotCommand("deleteme", "Forget your sign", _cmd_deleteme),
    "ping": BotCommand("ping", "Pong!", _canned("Pong!")),
    "uwu": BotCommand("uwu", "UwU", _canned("UwU")),
    "test": BotCommand("test", "Reply with a test message", _canned("Hello test reply")),
})

STORAGE_FAILURE_TEXT = "Sorry {who}, I couldn't reach my database. Please try again in a moment."


# -- Dispatch --------------------------------------------------------------


def parse_command(raw_message: str, prefix: str) -> tuple[str, str] | None:
    """Split ``<prefix><name> <remainder>`` into (name, remainder).

    Returns None when the message does not start with *prefix* or the name
    does not follow it directly. The name is lower-cased; the remainder is
    kept verbatim apart from the separating whitespace.
    """
    if not raw_message.startswith(prefix):
        return None
    rest = raw_message[len(prefix):]
    if not rest or rest[0].isspace():
        return None
    parts = rest.split(maxsplit=1)
    name = parts[0].lower()
    args = parts[1] if len(parts) > 1 else ""
    return name, args


async def dispatch(raw_message: str, ctx: CommandContext) -> Reply | None:
    """Route a chat message to its handler.

    Returns None (no reply) for messages without the prefix and for unknown
    commands. Storage faults are logged and turned into a failure reply;
    nothing raised by a handler's backend escapes this boundary.
    """
    parsed = parse_command(raw_message, ctx.deps.command_prefix)
    if parsed is None:
        return None
    name, args = parsed

    cmd = COMMANDS.get(name)
    if cmd is None:
        return None

    with tracer.start_as_current_span(f"command.{cmd.name}") as span:
        span.set_attribute("zodiac.user_id", ctx.user_id)
        try:
            reply = await cmd.handler(ctx, args)
        except StorageError as e:
            logger.exception("command %s for user %s failed: %s", cmd.name, ctx.user_id, e)
            span.set_attribute("zodiac.outcome", "storage_error")
            span.record_exception(e)
            return Reply(STORAGE_FAILURE_TEXT.format(who=ctx.who))
        span.set_attribute("zodiac.outcome", "ok")
        return reply
