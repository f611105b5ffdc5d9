"""Interactive host dashboard with arrow-key navigation using rich."""

import sys
import termios
import tty

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from assho.errors import AsshoError
from assho.store import Store
from assho.tree import Row

KEY_UP = ("\x1b[A", "k")
KEY_DOWN = ("\x1b[B", "j")
KEY_ENTER = ("\r", "\n")
KEY_QUIT = ("q", "\x03")
KEY_ESCAPE = "\x1b"
KEY_BACKSPACE = ("\x7f", "\x08")


def get_key() -> str:
    """Read a single keypress from stdin."""
    fd = sys.stdin.fileno()
    old_settings = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        ch = sys.stdin.read(1)
        # Handle arrow keys (escape sequences)
        if ch == "\x1b":
            ch += sys.stdin.read(2)
        return ch
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


def row_label(row: Row) -> str:
    """Tree-style label for a row, with indentation and expand markers."""
    pad = "  " * row.indent
    if row.is_group:
        marker = "▼" if row.group.expanded else "▶"
        return f"{pad}{marker} [bold magenta]{escape(row.group.name)}[/bold magenta]"
    host = row.host
    if host.is_container:
        return f"{pad}🐳 {escape(host.alias)}"
    marker = "▼" if host.expanded else "▶"
    return f"{pad}{marker} {escape(host.alias)}"


def row_detail(row: Row) -> str:
    if row.is_group:
        return "group"
    return escape(row.host.display_name)


def filter_rows(store: Store, query: str) -> list[Row]:
    """Rows matching query, searched across collapsed items too."""
    if not query:
        return store.rows
    needle = query.lower()
    return [r for r in store.all_rows() if needle in r.search_text.lower()]


class Dashboard:
    """Keyboard-driven host list over a Store.

    Enter on a host selects it for connecting, Enter on a group toggles it,
    Space shows or hides a host's containers, J/K reorder, / filters.
    """

    def __init__(self, store: Store, console: Console | None = None):
        self.store = store
        self.console = console or Console()
        self.selected_idx = 0
        self.query = ""
        self.filtering = False
        self.status = ""
        self.status_is_error = False

    def visible_rows(self) -> list[Row]:
        return filter_rows(self.store, self.query)

    def _clamp(self, rows: list[Row]) -> None:
        if not rows:
            self.selected_idx = 0
        else:
            self.selected_idx = max(0, min(self.selected_idx, len(rows) - 1))

    def _reselect(self, item_id: str) -> None:
        for i, row in enumerate(self.visible_rows()):
            if row.item_id == item_id:
                self.selected_idx = i
                return

    def _set_status(self, message: str, is_error: bool = False) -> None:
        self.status = message
        self.status_is_error = is_error

    def render(self) -> Panel:
        """Render the current dashboard state."""
        rows = self.visible_rows()
        self._clamp(rows)

        table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2), expand=True)
        table.add_column("", width=2)  # Selection indicator
        table.add_column("Name")
        table.add_column("Target", style="dim")

        for i, row in enumerate(rows):
            is_selected = i == self.selected_idx
            indicator = "[bold cyan]▸[/bold cyan]" if is_selected else " "
            style = "bold white on grey23" if is_selected else ""
            table.add_row(indicator, row_label(row), row_detail(row), style=style)

        help_text = Text()
        for key, desc in (
            ("↑/↓", "navigate"),
            ("Enter", "connect/toggle"),
            ("Space", "containers"),
            ("J/K", "move"),
            ("/", "filter"),
            ("q", "quit"),
        ):
            help_text.append(key, style="bold cyan")
            help_text.append(f" {desc}  ", style="dim")

        content = Table.grid(expand=True)
        if self.filtering or self.query:
            content.add_row(Text(f"Filter: {self.query}", style="yellow"))
        content.add_row(table)
        content.add_row("")
        if self.status:
            content.add_row(Text(self.status, style="red" if self.status_is_error else "green"))
        content.add_row(help_text)

        return Panel(content, title="[bold]assho[/bold]", border_style="cyan", padding=(1, 2))

    def handle_key(self, key: str):
        """Apply one keypress.

        Returns:
            A Host to connect to, False to quit, or None to keep going.
        """
        rows = self.visible_rows()

        if self.filtering:
            if key in KEY_ENTER:
                self.filtering = False
            elif key == KEY_ESCAPE:
                self.filtering = False
                self.query = ""
            elif key in KEY_BACKSPACE:
                self.query = self.query[:-1]
            elif key.isprintable() and len(key) == 1:
                self.query += key
                self.selected_idx = 0
            return None

        if key in KEY_UP and rows:
            self.selected_idx = (self.selected_idx - 1) % len(rows)
        elif key in KEY_DOWN and rows:
            self.selected_idx = (self.selected_idx + 1) % len(rows)
        elif key == "/":
            self.filtering = True
        elif key in KEY_QUIT or key == KEY_ESCAPE:
            return False
        elif rows:
            return self._act(key, rows[self.selected_idx])
        return None

    def _act(self, key: str, row: Row):
        try:
            if key in KEY_ENTER:
                if row.is_group:
                    self.store.toggle_group(row.group.id)
                    self._reselect(row.group.id)
                    return None
                self.store.record_history(row.host)
                return self.store.find_host(row.host.id) or row.host
            if key == " " and not row.is_group and not row.is_container:
                self.store.toggle_host(row.host.id)
            elif key in ("K", "J"):
                direction = -1 if key == "K" else 1
                if row.is_group:
                    self.store.move_group(row.group.id, direction)
                else:
                    self.store.move_host(row.host.id, direction)
                self._reselect(row.item_id)
        except AsshoError as e:
            self._set_status(str(e), is_error=True)
        return None

    def run(self):
        """Show the dashboard until the user picks a host or quits.

        Returns:
            The chosen Host, or None if cancelled.
        """
        with Live(self.render(), console=self.console, refresh_per_second=30, transient=True) as live:
            while True:
                result = self.handle_key(get_key())
                if result is False:
                    return None
                if result is not None:
                    return result
                live.update(self.render())
