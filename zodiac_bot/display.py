"""Themed terminal display: console, semantic styles, reply rendering."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.theme import Theme

from zodiac_bot.config import settings

# -- Theme palettes (keyed by theme name) ------------------------------------

_THEMES: dict[str, dict[str, str]] = {
    "dark":  {"status": "yellow",      "info": "cyan", "accent": "bold cyan",  "bot": "magenta",      "error": "bold red", "success": "green", "warning": "orange3", "hint": "dim"},
    "light": {"status": "dark_orange", "info": "blue", "accent": "bold blue",  "bot": "dark_magenta", "error": "bold red", "success": "green", "warning": "orange3", "hint": "dim"},
}

# -- Console (single instance, themed) --------------------------------------

console = Console(theme=Theme(_THEMES.get(settings.theme, _THEMES["light"])))

# -- Indicators ------------------------------------------------------------

PROMPT_CHAR = "❯"
BULLET      = "▸"
ERROR       = "✖"
INFO        = "◈"

# -- Theme switching -------------------------------------------------------


def set_theme(name: str) -> None:
    """Switch the console theme at runtime (e.g. from --theme flag)."""
    console.push_theme(Theme(_THEMES.get(name, _THEMES["light"])))


# -- Display helpers -------------------------------------------------------


def display_error(message: str, hint: str | None = None) -> None:
    """Red-bordered panel with optional recovery hint."""
    body = f"[bold red]{ERROR} {message}[/bold red]"
    if hint:
        body += f"\n[dim]{hint}[/dim]"
    console.print(Panel(body, border_style="red", title="Error", title_align="left"))


def display_info(message: str) -> None:
    """Themed info message."""
    console.print(f"[info]{INFO} {message}[/info]")


def display_reply(text: str, title: str | None = None, image: str | None = None) -> None:
    """Render a bot reply the way the chat client would show it."""
    body = escape(text)
    if image:
        body += f"\n[hint]{BULLET} image: {escape(image)}[/hint]"
    console.print(Panel(body, title=title, title_align="left", border_style="bot"))
