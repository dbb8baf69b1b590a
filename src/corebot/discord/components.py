"""Component routing by ``custom_id``."""

from __future__ import annotations

from collections.abc import Callable, Coroutine, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

WILDCARD = "*"


class InteractionKind(str, Enum):
    """Kind of interaction a handler responds to."""

    SLASH_COMMAND = "slash_command"
    USER_COMMAND = "user_command"
    MESSAGE_COMMAND = "message_command"
    BUTTON = "button"
    SELECT_MENU = "select_menu"
    MODAL = "modal"


ComponentCallback = Callable[..., Coroutine[Any, Any, None]]


@dataclass(frozen=True)
class ComponentRoute:
    pattern: str
    callback: ComponentCallback
    kind: InteractionKind

    @property
    def is_wildcard(self) -> bool:
        return self.pattern.endswith(WILDCARD)


class ComponentRouter:
    """Registry of component handlers keyed by ``custom_id``.

    A pattern ending in ``*`` matches every id sharing the part before it;
    the rest of the id is passed to the handler as a positional argument.
    Exact patterns win over wildcards, and longer wildcards over shorter.
    """

    def __init__(self) -> None:
        self._routes: dict[str, ComponentRoute] = {}

    def add(
        self,
        pattern: str,
        callback: ComponentCallback,
        kind: InteractionKind = InteractionKind.BUTTON,
    ) -> ComponentRoute:
        if pattern in self._routes:
            raise ValueError(f"Component handler already registered for {pattern!r}")
        route = ComponentRoute(pattern=pattern, callback=callback, kind=kind)
        self._routes[pattern] = route
        return route

    def component(
        self,
        pattern: str,
        kind: InteractionKind = InteractionKind.BUTTON,
    ) -> Callable[[ComponentCallback], ComponentCallback]:
        """Decorator form of :meth:`add`."""

        def decorator(callback: ComponentCallback) -> ComponentCallback:
            self.add(pattern, callback, kind)
            return callback

        return decorator

    def match(self, custom_id: str) -> tuple[ComponentRoute, tuple[str, ...]] | None:
        """Find the route for ``custom_id`` and the captured wildcard text."""
        route = self._routes.get(custom_id)
        if route is not None and not route.is_wildcard:
            return route, ()

        wildcards = sorted(
            (r for r in self._routes.values() if r.is_wildcard),
            key=lambda r: len(r.pattern),
            reverse=True,
        )
        for route in wildcards:
            prefix = route.pattern[: -len(WILDCARD)]
            if custom_id.startswith(prefix):
                return route, (custom_id[len(prefix):],)
        return None

    def __iter__(self) -> Iterator[ComponentRoute]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)
