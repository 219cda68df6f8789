"""Headless user interface used by the HTTP server and tests."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from avocado_devtools.ui.base import QuickPickItem, UserInterface


@dataclass(frozen=True)
class Notification:
    """A message shown to the user."""

    level: str  # information|warning|error
    message: str


class HeadlessUserInterface(UserInterface):
    """Answers picks from a queue of preset labels and records everything shown.

    A pick consumes the next queued choice and returns the first item whose
    label matches it. An empty queue or an unmatched label cancels the pick.
    """

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        *,
        choices: Iterable[str | None] | None = None,
        error_action: str | None = None,
    ) -> None:
        self._choices: deque[str | None] = deque(choices or [])
        self._error_action = error_action
        self.notifications: list[Notification] = []
        self.opened_urls: list[str] = []
        self.status_text: str | None = None
        self.placeholders: list[str] = []

    def queue_choice(self, label: str | None) -> None:
        self._choices.append(label)

    def clear_choices(self) -> None:
        self._choices.clear()

    async def pick(
        self, items: Sequence[QuickPickItem], *, placeholder: str
    ) -> QuickPickItem | None:
        self.placeholders.append(placeholder)
        if not self._choices:
            return None
        wanted = self._choices.popleft()
        for item in items:
            if item.label == wanted:
                return item
        return None

    def show_information(self, message: str) -> None:
        self._logger.info("notification: %s", message)
        self.notifications.append(Notification(level="information", message=message))

    def show_warning(self, message: str) -> None:
        self._logger.warning("notification: %s", message)
        self.notifications.append(Notification(level="warning", message=message))

    async def show_error(self, message: str, *actions: str) -> str | None:
        self._logger.error("notification: %s", message)
        self.notifications.append(Notification(level="error", message=message))
        if self._error_action is not None and self._error_action in actions:
            return self._error_action
        return None

    def set_status(self, text: str | None) -> None:
        self.status_text = text

    def open_external(self, url: str) -> None:
        self._logger.info("open external: url=%s", url)
        self.opened_urls.append(url)

    def messages(self, level: str | None = None) -> list[str]:
        return [n.message for n in self.notifications if level is None or n.level == level]
