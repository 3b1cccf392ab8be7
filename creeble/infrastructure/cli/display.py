import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from creeble.domain.interfaces.user_interface import UserInterface
from creeble.domain.models.common import Item, PaginationMeta

logger = logging.getLogger(__name__)

MAX_INFERRED_COLUMNS = 6
MAX_CELL_LENGTH = 60
PREFERRED_COLUMNS = ("id", "title", "name", "slug", "database", "created_at")


def infer_columns(items: Sequence[Item], limit: int = MAX_INFERRED_COLUMNS) -> List[str]:
    """Picks table columns: well-known keys first, then keys in first-seen order."""
    seen: List[str] = []
    for item in items:
        for key in item:
            if key not in seen:
                seen.append(key)
    preferred = [key for key in PREFERRED_COLUMNS if key in seen]
    others = [key for key in seen if key not in preferred and key != "properties"]
    return (preferred + others)[:limit]


def format_cell(value: Any, max_length: int = MAX_CELL_LENGTH) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False, default=str)
    else:
        text = str(value)
    if len(text) > max_length:
        text = text[:max_length - 3] + "..."
    return text


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_items(self, items: List[Item], columns: Optional[Sequence[str]] = None, **kwargs: Any) -> None:
        """Displays items as a table.

        Args:
            items: The records to display.
            columns: Keys to show; inferred from the items if None.
            **kwargs: Additional arguments including:
                - title: Table title
                - pagination: PaginationMeta shown as a caption
        """
        title = kwargs.get("title")
        pagination: Optional[PaginationMeta] = kwargs.get("pagination")
        logger.debug(f"display_items called: {len(items)} item(s), title={title}")

        if not items:
            self.display_info("No items found.")
            return

        columns = list(columns) if columns else infer_columns(items)
        table = Table(title=title, box=ROUNDED, border_style="cyan", show_header=True, padding=(0, 1))
        table.add_column("#", style="dim", justify="right")
        for column in columns:
            table.add_column(column, style="bold" if column == "title" else None, overflow="fold")

        for index, item in enumerate(items, 1):
            table.add_row(str(index), *(format_cell(item.get(column)) for column in columns))

        if pagination is not None:
            table.caption = (
                f"Page {pagination.current_page} of {pagination.last_page} "
                f"({pagination.total} total, {pagination.per_page} per page)"
            )
        else:
            table.caption = f"{len(items)} item(s)"
        self.console.print(table)

    def display_json(self, payload: Any, **kwargs: Any) -> None:
        """Pretty-prints a JSON-compatible payload."""
        title = kwargs.get("title")
        rendered = JSON(json.dumps(payload, ensure_ascii=False, default=str))
        if title:
            self.console.print(Panel(rendered, title=f"[bold cyan]{title}[/bold cyan]", border_style="cyan",
                                     box=ROUNDED, padding=(0, 1)))
        else:
            self.console.print(rendered)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
            **kwargs: details: Optional mapping (e.g. field errors) listed below the message.
        """
        details: Optional[Dict[str, Any]] = kwargs.get("details")
        text = Text(error_message, style="white")
        if details:
            for key, value in details.items():
                messages = value if isinstance(value, list) else [value]
                for message in messages:
                    text.append(f"\n  {key}: {message}", style="dim")
        panel = Panel(
            text,
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
