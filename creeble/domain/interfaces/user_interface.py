"""Interface for presenting results to the user.

Allows the CLI to be tested against a mock display instead of a real
terminal.
"""

import abc
from typing import Any, List, Optional, Sequence

from creeble.domain.models.common import Item


class UserInterface(abc.ABC):
    """Abstract Base Class for user-facing output."""

    @abc.abstractmethod
    def display_items(self, items: List[Item], columns: Optional[Sequence[str]] = None, **kwargs: Any) -> None:
        """Displays a collection of items, typically as a table.

        Args:
            items: The records to display.
            columns: Keys to show; inferred from the items if None.
            **kwargs: Additional arguments (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_json(self, payload: Any, **kwargs: Any) -> None:
        """Displays an arbitrary JSON-compatible payload."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass
