from dataclasses import dataclass

from zodiac_bot.content import ContentLibrary
from zodiac_bot.store import PreferenceStore


@dataclass(frozen=True)
class BotDeps:
    """Runtime dependencies shared by every command invocation.

    Built once in main.py and handed to each dispatch. Frozen: handlers
    share the store and the content library, nothing else.
    """

    store: PreferenceStore
    content: ContentLibrary
    command_prefix: str = "~"
