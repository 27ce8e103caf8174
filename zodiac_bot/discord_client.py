"""Discord frontend: turns gateway messages into dispatch calls and replies."""

import logging

import discord

from zodiac_bot._commands import CommandContext, Reply, dispatch
from zodiac_bot.deps import BotDeps

logger = logging.getLogger(__name__)


def format_reply(reply: Reply) -> str:
    """Plain-text message body: bold title line, then the text."""
    if reply.title:
        return f"**{reply.title}**\n{reply.text}"
    return reply.text


class ZodiacClient(discord.Client):
    """discord.py runs each on_message in its own task; no ordering is added here."""

    def __init__(self, deps: BotDeps):
        intents = discord.Intents.default()
        intents.message_content = True  # commands are read from message text
        super().__init__(intents=intents)
        self.deps = deps

    async def on_ready(self) -> None:
        logger.info("%s connected", self.user)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return

        ctx = CommandContext(
            user_id=str(message.author.id),
            deps=self.deps,
            mention=message.author.mention,
        )
        reply = await dispatch(message.content, ctx)
        if reply is None:
            return

        kwargs = {}
        image_path = self.deps.content.image_path(reply.image)
        if image_path is not None:
            kwargs["file"] = discord.File(image_path)

        try:
            if reply.as_reply:
                await message.reply(format_reply(reply), **kwargs)
            else:
                await message.channel.send(format_reply(reply), **kwargs)
        except discord.HTTPException as e:
            logger.warning("failed to send reply in channel %s: %s", message.channel.id, e)
