"""Process-local change notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    """Handle returned by ``EventEmitter.subscribe``."""

    _dispose: Callable[[], None]

    def dispose(self) -> None:
        self._dispose()


class EventEmitter(Generic[T]):
    """Delivers events synchronously to subscribed handlers.

    A failing handler is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: list[Callable[[T], None]] = []

    def subscribe(self, handler: Callable[[T], None]) -> Subscription:
        self._handlers.append(handler)

        def _remove() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

        return Subscription(_remove)

    def fire(self, event: T) -> None:
        for handler in tuple(self._handlers):
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception("event handler failed: handler=%r", handler)

    def dispose(self) -> None:
        self._handlers.clear()
