"""Disposable gateway event subscriptions."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any

from discord.ext import commands

Listener = Callable[..., Coroutine[Any, Any, Any]]


class Subscription:
    """A single listener registration; ``dispose()`` removes it.

    Args:
        client: Client the listener was added to.
        event: Event name without the ``on_`` prefix.
        callback: The registered coroutine function.
    """

    def __init__(self, client: commands.Bot, event: str, callback: Listener) -> None:
        self._client = client
        self.event = event
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        if not self._active:
            return
        self._client.remove_listener(self.callback, f"on_{self.event}")
        self._active = False


def subscribe(client: commands.Bot, event: str, callback: Listener) -> Subscription:
    """Register ``callback`` for ``event`` and return its subscription."""
    client.add_listener(callback, f"on_{event}")
    return Subscription(client, event, callback)


class EventSubscriptions:
    """Collection of subscriptions released together.

    Usable as a context manager so every exit path unsubscribes.
    """

    def __init__(self, client: commands.Bot) -> None:
        self._client = client
        self._subscriptions: list[Subscription] = []

    def subscribe(self, event: str, callback: Listener) -> Subscription:
        subscription = subscribe(self._client, event, callback)
        self._subscriptions.append(subscription)
        return subscription

    def dispose(self) -> None:
        """Remove every listener, most recent first."""
        while self._subscriptions:
            self._subscriptions.pop().dispose()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __enter__(self) -> EventSubscriptions:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()
