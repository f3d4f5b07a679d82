"""Rich Console factory and theme for dhdctl output.

Consoles render into a StringIO buffer so renderers keep a plain
``-> str`` contract. Rich drops color codes when not writing to a TTY
(tests, pipes).
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

DHD_THEME = Theme(
    {
        "dhd.ok": "bold green",
        "dhd.error": "bold red",
        "dhd.warning": "bold yellow",
        "dhd.op": "bold cyan",
        "dhd.key": "dim",
        "dhd.module": "bold blue",
        "dhd.tag": "magenta",
        "dhd.path": "dim",
        "dhd.state.satisfied": "green",
        "dhd.state.changed": "bold yellow",
        "dhd.state.failed": "bold red",
        "dhd.state.skipped": "dim",
    }
)

_STATE_STYLES: dict[str, str] = {
    "satisfied": "dhd.state.satisfied",
    "changed": "dhd.state.changed",
    "failed": "dhd.state.failed",
    "skipped": "dhd.state.skipped",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=DHD_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_state(state: str) -> str:
    """Rich style name for a node or module state."""
    return _STATE_STYLES.get(state, "")
