"""User-interface interface consumed by the target and container layers.

Editors implement this to show quick picks, notifications and the status
indicator. The backend never renders anything itself.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class QuickPickItem:
    """One entry of an interactive choice.

    Attributes:
        label: Text shown for the entry; also what selections are matched on.
        description: Secondary text shown next to the label.
        detail: Optional extra line.
        picked: Whether the entry is pre-selected.
        value: Arbitrary payload returned with the selection.
    """

    label: str
    description: str = ""
    detail: str | None = None
    picked: bool = False
    value: Any = None


class UserInterface:
    """Abstract user interface."""

    async def pick(
        self, items: Sequence[QuickPickItem], *, placeholder: str
    ) -> QuickPickItem | None:
        """Presents ``items`` and returns the chosen one, or None if cancelled."""

        raise NotImplementedError

    def show_information(self, message: str) -> None:
        raise NotImplementedError

    def show_warning(self, message: str) -> None:
        raise NotImplementedError

    async def show_error(self, message: str, *actions: str) -> str | None:
        """Shows an error with optional action buttons; returns the chosen action."""

        raise NotImplementedError

    def set_status(self, text: str | None) -> None:
        """Updates the status indicator. ``None`` hides it."""

        raise NotImplementedError

    def open_external(self, url: str) -> None:
        raise NotImplementedError
