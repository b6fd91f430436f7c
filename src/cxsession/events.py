from __future__ import annotations

from typing import Any, Callable


class EventEmitter:
    """Minimal observer registry.

    Handlers run synchronously, in registration order, on the emitting
    thread. A handler that raises propagates to the emitter.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = {}

    def connect(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def disconnect(self, event: str, handler: Callable[..., Any] | None = None) -> None:
        if handler is None:
            self._handlers.pop(event, None)
            return
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, *args: Any) -> bool:
        handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            handler(*args)
        return bool(handlers)
