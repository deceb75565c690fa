"""Publish/subscribe channels used by the monitors.

Listeners run synchronously in registration order. A listener that raises is
logged and skipped so the remaining listeners still see the event.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`."""

    __slots__ = ("_release",)

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    close = unsubscribe


class EventChannel(Generic[T]):
    """A named fan-out channel for one event type."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[tuple[int, Listener]] = []
        self._next_token = 0

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Subscription:
        token = self._next_token
        self._next_token += 1
        self._listeners.append((token, listener))

        def release() -> None:
            self._listeners = [entry for entry in self._listeners if entry[0] != token]

        return Subscription(release)

    def publish(self, item: T) -> None:
        # Snapshot so listeners may unsubscribe while being notified.
        for _, listener in list(self._listeners):
            try:
                listener(item)
            except Exception:
                logger.exception("Error in %s listener", self._name)

    def clear(self) -> None:
        self._listeners.clear()


__all__ = ["EventChannel", "Listener", "Subscription"]
