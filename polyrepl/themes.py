"""
Per-kernel console themes, the startup splash and announcements.
"""

from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from polyrepl import __version__


@dataclass(frozen=True)
class Theme:
    """Colors and labels used when rendering a kernel's session."""
    name: str
    display_name: str
    accent_style: str
    prompt_style: str
    caption: str

    def prompt(self, kernel_name: str) -> str:
        return f"[{self.prompt_style}]{kernel_name}[/{self.prompt_style}] [bold]>[/bold] "


CSHARP_THEME = Theme(
    name="csharp",
    display_name="C#",
    accent_style="bright_magenta",
    prompt_style="bold magenta",
    caption="C# interactive",
)

FSHARP_THEME = Theme(
    name="fsharp",
    display_name="F#",
    accent_style="bright_cyan",
    prompt_style="bold cyan",
    caption="F# interactive",
)

PWSH_THEME = Theme(
    name="pwsh",
    display_name="PowerShell",
    accent_style="bright_blue",
    prompt_style="bold blue",
    caption="PowerShell interactive",
)

DEFAULT_THEME = Theme(
    name="default",
    display_name="polyrepl",
    accent_style="bright_green",
    prompt_style="bold green",
    caption="Polyglot interactive",
)

_KERNEL_THEMES = {
    "csharp": CSHARP_THEME,
    "fsharp": FSHARP_THEME,
    "pwsh": PWSH_THEME,
}


def get_theme(kernel_name: str) -> Optional[Theme]:
    """Theme for a kernel, or None if it has no theme of its own."""
    return _KERNEL_THEMES.get(kernel_name)


def render_splash(console: Console, theme: Theme):
    """Print the startup banner."""
    body = Text()
    body.append("polyrepl", style=f"bold {theme.accent_style}")
    body.append(f"  {__version__}\n", style="dim")
    body.append(theme.caption)
    body.append("\n\n")
    body.append("#!quit", style="bold cyan")
    body.append(" to exit, ", style="dim")
    body.append("#!<kernel>", style="bold cyan")
    body.append(" to switch language", style="dim")

    console.print(Panel(
        body,
        title=f"[bold]{theme.display_name}[/bold]",
        border_style=theme.accent_style,
        padding=(0, 1),
    ))


def announce(console: Console, message: str):
    """Print a one-line status message."""
    console.print(f"[bold]{escape(message)}[/bold]")
