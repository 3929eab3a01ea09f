"""Lifecycle event emitter for channels."""

import logging
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger("duplexline.emitter")

EventHandler = Callable[[dict[str, Any]], Any]


class ChannelEvent(str, Enum):
    """Observable channel lifecycle events.

    READY: pairing completed ({"peer_key"})
    DESTROY: channel destroyed ({"reason"})
    ERROR: handler, transport or size failure ({"error", "context"})
    TIMEOUT: a request deadline elapsed ({"request_id", "cmdname", "timeout_ms"})
    MESSAGE_SENT / MESSAGE_RECEIVED: traffic ({"cmdname", "request_id", ...})
    RATE_LIMITED: an outbound message was dropped ({"current_count", "limit", "error"})
    VALIDATION_FAILED: an inbound message was dropped ({"reason", "error", "data"})
    BROADCAST_SENT / BROADCAST_RECEIVED: one-way traffic ({"cmdname", ...})
    HUB_ACTIVATED: the hub announced a restart ({"version"})
    """

    READY = "ready"
    DESTROY = "destroy"
    ERROR = "error"
    TIMEOUT = "timeout"
    MESSAGE_SENT = "message-sent"
    MESSAGE_RECEIVED = "message-received"
    RATE_LIMITED = "rate-limited"
    VALIDATION_FAILED = "validation-failed"
    BROADCAST_SENT = "broadcast-sent"
    BROADCAST_RECEIVED = "broadcast-received"
    HUB_ACTIVATED = "hub-activated"


class EventEmitter:
    """Synchronous pub/sub for lifecycle events.

    Handlers receive the payload dict. A handler that raises is logged and
    skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[ChannelEvent, list[EventHandler]] = {}
        self._events_enabled = True

    def on(self, event: ChannelEvent | str, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that removes it."""
        name = ChannelEvent(event)
        handlers = self._handlers.setdefault(name, [])
        if handler not in handlers:
            handlers.append(handler)

        def unsubscribe() -> None:
            self.off(name, handler)

        return unsubscribe

    def once(self, event: ChannelEvent | str, handler: EventHandler) -> Callable[[], None]:
        name = ChannelEvent(event)

        def wrapper(payload: dict[str, Any]) -> Any:
            self.off(name, wrapper)
            return handler(payload)

        return self.on(name, wrapper)

    def off(self, event: ChannelEvent | str, handler: EventHandler) -> bool:
        name = ChannelEvent(event)
        handlers = self._handlers.get(name)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[name]
        return True

    def off_all(self, event: ChannelEvent | str | None = None) -> None:
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(ChannelEvent(event), None)

    def emit(self, event: ChannelEvent | str, payload: dict[str, Any] | None = None) -> None:
        if not self._events_enabled:
            return
        name = ChannelEvent(event)
        handlers = self._handlers.get(name)
        if not handlers:
            return

        # Copy so handlers may unsubscribe while we iterate
        for handler in list(handlers):
            try:
                handler(payload if payload is not None else {})
            except Exception as e:
                logger.error(
                    f"Error in {name.value} handler: {e}",
                    extra={"event": name.value, "error": str(e)},
                )

    def has_listeners(self, event: ChannelEvent | str) -> bool:
        return bool(self._handlers.get(ChannelEvent(event)))

    def listener_count(self, event: ChannelEvent | str) -> int:
        return len(self._handlers.get(ChannelEvent(event), ()))

    def set_events_enabled(self, enabled: bool) -> None:
        self._events_enabled = enabled

    def destroy(self) -> None:
        """Remove every handler and stop emitting."""
        self._handlers.clear()
        self._events_enabled = False
