import logging
from typing import Any, List, Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from flockcli.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library.

    Everything goes to stderr: stdout is reserved for the records themselves.
    """

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console(stderr=True)

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        logger.debug(f"display_error: {error_message}")
        self._console.print(Text(f"Error: {error_message}", style="bold red"))

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        self._console.print(Text(f"Warning: {warning_message}", style="yellow"))

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        style = kwargs.get("style", "cyan")
        self._console.print(Text(info_message, style=style))

    def display_table(self, title: str, columns: Sequence[str], rows: List[Sequence[Any]]) -> None:
        table = Table(title=title, show_lines=False)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(cell) for cell in row))
        self._console.print(table)
