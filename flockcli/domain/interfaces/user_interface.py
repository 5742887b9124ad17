"""Interface for interacting with the user (output only).

Defines the contract for displaying information, errors, warnings and
tables, allowing different UI implementations.
"""

import abc
from typing import Any, List, Sequence


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_table(self, title: str, columns: Sequence[str], rows: List[Sequence[Any]]) -> None:
        """Displays tabular data (e.g., the quota table)."""
        pass
