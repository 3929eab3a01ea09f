"""Multi-endpoint hub: one Channel per remote endpoint behind a shared router.

The Hub keeps an explicit registry of channels and client metadata; there is
no class-level state, so several hubs may coexist (one per host).

Responsibilities:
- route every inbound host event to the channel of its sender endpoint,
  lazily creating channels for unknown endpoints
- install global command handlers on every current and future channel
- answer the built-in ``__register__`` and ``__ping__`` commands
- fan out broadcasts to live endpoints, optionally filtered by app type
- sweep channels whose endpoint is no longer live
- announce a restart with ``__sw-activated__`` so endpoints re-register
"""

import asyncio
import inspect
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from duplexline.adapters.base import HubHost, MessageEvent
from duplexline.adapters.endpoint import EndpointTransport
from duplexline.core.channel import Channel, HandlerResult
from duplexline.core.config import HubConfig
from duplexline.core.emitter import ChannelEvent
from duplexline.core.envelope import Envelope, now_ms
from duplexline.core.errors import OriginMismatchError
from duplexline.core.logging import configure_hub_logger

REGISTER_CMD = "__register__"
PING_CMD = "__ping__"
ACTIVATED_EVENT = "__sw-activated__"
RESERVED_PREFIX = "__"


class ClientMeta(BaseModel):
    """What an endpoint declared about itself when registering."""

    endpoint_id: str
    app_type: str | None = None
    app_name: str | None = None
    connected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}


@dataclass(frozen=True)
class HubRequest:
    """Inbound request as seen by a global handler."""

    data: dict[str, Any]
    endpoint_id: str
    client_meta: ClientMeta | None
    envelope: Envelope


GlobalHandler = Callable[[HubRequest], HandlerResult | Awaitable[HandlerResult]]
ChannelFactory = Callable[[str], Channel]
UnknownEndpointCallback = Callable[[str, MessageEvent], Any]


class Hub:
    """Owns one Channel per endpoint of a ``HubHost``.

    Args:
        host: Directory of live endpoints plus the raw send/listen primitives.
        config: Hub settings. Defaults to ``HubConfig()``.
        channel_factory: Builds the channel for an endpoint id. Defaults to a
            ``Channel`` over an ``EndpointTransport``.
        on_client_connect: Called with ``(endpoint_id, ClientMeta)`` after
            an endpoint registers.
        on_client_disconnect: Called with ``endpoint_id`` when an endpoint's
            channel is destroyed, unregistered or swept.
    """

    def __init__(
        self,
        host: HubHost,
        config: HubConfig | None = None,
        *,
        channel_factory: ChannelFactory | None = None,
        on_client_connect: Callable[[str, ClientMeta], Any] | None = None,
        on_client_disconnect: Callable[[str], Any] | None = None,
    ) -> None:
        self.host = host
        self.config = config or HubConfig()
        self._channel_factory = channel_factory or self._default_channel_factory
        self._on_client_connect = on_client_connect
        self._on_client_disconnect = on_client_disconnect
        self._log = configure_hub_logger()

        self._channels: dict[str, Channel] = {}
        self._client_meta: dict[str, ClientMeta] = {}
        self._global_handlers: dict[str, GlobalHandler] = {}
        self._unknown_endpoint: UnknownEndpointCallback | None = None
        self._routing = False
        self._initialized = False
        self._cleanup_task: asyncio.Task | None = None

        self._register_builtin_handlers()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def start(self) -> None:
        """Enable routing (with lazy channel creation) and the cleanup sweep.

        Must be called inside a running event loop.
        """
        if self._initialized:
            self._log.warning("Hub already started")
            return
        self._initialized = True

        self.enable_global_routing(self._adopt_unknown_endpoint)

        interval = self.config.cleanup_interval_ms
        if interval > 0:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval / 1000))
            self._cleanup_task.add_done_callback(self._on_cleanup_done)

        version = f" v{self.config.version}" if self.config.version else ""
        self._log.info(f"Hub started{version}", extra={"version": self.config.version})

    async def activate(self) -> int:
        """Start the hub and announce the (re)start to every live endpoint."""
        self.start()
        return await self.notify_activated()

    def shutdown(self) -> None:
        """Stop routing and the sweep, then destroy every channel.

        Registries are cleared before the channels are destroyed, so no
        disconnect callbacks fire during shutdown. Use ``aclose`` to also
        wait for the cleanup sweep to finish cancelling.
        """
        self._stop_cleanup()
        self.disable_global_routing()

        channels = list(self._channels.values())
        self._channels.clear()
        self._client_meta.clear()
        for channel in channels:
            channel.destroy()

        self._global_handlers.clear()
        self._register_builtin_handlers()
        self._initialized = False
        self._log.info("Hub shut down", extra={"channels_destroyed": len(channels)})

    async def aclose(self) -> None:
        """Shut down and wait until the cleanup sweep has stopped."""
        task = self._cleanup_task
        self.shutdown()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _stop_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    def _on_cleanup_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._log.error(f"Cleanup sweep stopped: {error}", extra={"error": str(error)})

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @property
    def is_global_routing_enabled(self) -> bool:
        return self._routing

    def enable_global_routing(self, on_unknown_endpoint: UnknownEndpointCallback | None = None) -> None:
        """Install the shared host listener.

        Args:
            on_unknown_endpoint: Called with ``(endpoint_id, event)`` for events
                from endpoints without a channel. May be a coroutine function.
        """
        self._unknown_endpoint = on_unknown_endpoint
        if not self._routing:
            self.host.add_message_listener(self._route)
            self._routing = True

    def disable_global_routing(self) -> None:
        if self._routing:
            self.host.remove_message_listener(self._route)
            self._routing = False

    async def _route(self, event: MessageEvent) -> None:
        endpoint_id = event.source
        if not endpoint_id:
            return

        channel = self._channels.get(endpoint_id)
        if channel is not None:
            await channel.handle_message(event)
            return

        callback = self._unknown_endpoint
        if callback is None:
            return
        try:
            result = callback(endpoint_id, event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._log.error(
                f"Unknown-endpoint callback failed: {e}",
                extra={"endpoint_id": endpoint_id, "error": str(e)},
            )

    async def _adopt_unknown_endpoint(self, endpoint_id: str, event: MessageEvent) -> None:
        # An endpoint still paired with a previous hub process: rebuild its channel
        self._log.info("Creating channel for unknown endpoint", extra={"endpoint_id": endpoint_id})
        channel = self.create_channel(endpoint_id)
        await channel.handle_message(event)

    # ------------------------------------------------------------------
    # Channel registry
    # ------------------------------------------------------------------

    def _default_channel_factory(self, endpoint_id: str) -> Channel:
        return Channel(EndpointTransport(self.host, endpoint_id), self.config.channel)

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def get_channel(self, endpoint_id: str) -> Channel | None:
        return self._channels.get(endpoint_id)

    def has_channel(self, endpoint_id: str) -> bool:
        return endpoint_id in self._channels

    def register_channel(self, endpoint_id: str, channel: Channel) -> None:
        """Track ``channel`` for ``endpoint_id`` and install the global handlers.

        A different channel already registered for ``endpoint_id`` is
        destroyed; the endpoint is not reported as disconnected.
        """
        previous = self._channels.pop(endpoint_id, None)
        if previous is not None and previous is not channel:
            self._log.warning("Replacing channel for endpoint", extra={"endpoint_id": endpoint_id})
            previous.destroy()
        self._channels[endpoint_id] = channel
        self._apply_global_handlers(channel, endpoint_id)
        channel.on(ChannelEvent.DESTROY, lambda _: self._forget(endpoint_id, channel))

    def unregister_channel(self, endpoint_id: str) -> None:
        """Stop tracking an endpoint without destroying its channel."""
        self._channels.pop(endpoint_id, None)
        self._client_meta.pop(endpoint_id, None)
        self._notify_disconnect(endpoint_id)

    def create_channel(self, endpoint_id: str) -> Channel:
        channel = self._channel_factory(endpoint_id)
        self.register_channel(endpoint_id, channel)
        return channel

    def create_channel_for_event(self, event: MessageEvent) -> Channel:
        """Create a channel for the endpoint that sent ``event``.

        Raises:
            OriginMismatchError: The event carries no source endpoint id.
        """
        if not event.source:
            raise OriginMismatchError(
                "Cannot create channel: event has no source endpoint id",
                details={"origin": event.origin},
            )
        return self.create_channel(event.source)

    def _forget(self, endpoint_id: str, channel: Channel) -> None:
        # Only the currently registered channel may drop the endpoint
        if self._channels.get(endpoint_id) is not channel:
            return
        del self._channels[endpoint_id]
        self._client_meta.pop(endpoint_id, None)
        self._notify_disconnect(endpoint_id)

    def _notify_disconnect(self, endpoint_id: str) -> None:
        if self._on_client_disconnect is None:
            return
        try:
            self._on_client_disconnect(endpoint_id)
        except Exception as e:
            self._log.error(
                f"on_client_disconnect failed: {e}",
                extra={"endpoint_id": endpoint_id, "error": str(e)},
            )

    # ------------------------------------------------------------------
    # Client metadata
    # ------------------------------------------------------------------

    def register_client_meta(
        self, endpoint_id: str, app_type: str | None = None, app_name: str | None = None
    ) -> ClientMeta:
        meta = ClientMeta(endpoint_id=endpoint_id, app_type=app_type, app_name=app_name)
        self._client_meta[endpoint_id] = meta
        if self._on_client_connect is not None:
            try:
                self._on_client_connect(endpoint_id, meta)
            except Exception as e:
                self._log.error(
                    f"on_client_connect failed: {e}",
                    extra={"endpoint_id": endpoint_id, "error": str(e)},
                )
        return meta

    def get_client_meta(self, endpoint_id: str) -> ClientMeta | None:
        return self._client_meta.get(endpoint_id)

    def get_all_client_meta(self) -> dict[str, ClientMeta]:
        return dict(self._client_meta)

    def get_clients_by_type(self, app_type: str) -> list[ClientMeta]:
        return [meta for meta in self._client_meta.values() if meta.app_type == app_type]

    # ------------------------------------------------------------------
    # Global handlers
    # ------------------------------------------------------------------

    def subscribe_global(self, cmdname: str, handler: GlobalHandler) -> None:
        """Install ``handler`` on every current and future channel."""
        if cmdname.startswith(RESERVED_PREFIX):
            self._log.warning(
                f"Handler name {cmdname!r} uses reserved prefix {RESERVED_PREFIX!r}",
                extra={"cmdname": cmdname},
            )
        self._global_handlers[cmdname] = handler
        for endpoint_id, channel in self._channels.items():
            self._apply_handler(channel, endpoint_id, cmdname, handler)

    def unsubscribe_global(self, cmdname: str) -> None:
        self._global_handlers.pop(cmdname, None)
        for channel in self._channels.values():
            channel.unsubscribe(cmdname)

    def _apply_global_handlers(self, channel: Channel, endpoint_id: str) -> None:
        for cmdname, handler in self._global_handlers.items():
            self._apply_handler(channel, endpoint_id, cmdname, handler)

    def _apply_handler(
        self, channel: Channel, endpoint_id: str, cmdname: str, handler: GlobalHandler
    ) -> None:
        def wrapper(envelope: Envelope) -> HandlerResult | Awaitable[HandlerResult]:
            return handler(
                HubRequest(
                    data=envelope.data or {},
                    endpoint_id=endpoint_id,
                    client_meta=self._client_meta.get(endpoint_id),
                    envelope=envelope,
                )
            )

        channel.subscribe(cmdname, wrapper)

    def _register_builtin_handlers(self) -> None:
        self._global_handlers[REGISTER_CMD] = self._handle_register
        self._global_handlers[PING_CMD] = self._handle_ping

    def _handle_register(self, request: HubRequest) -> dict[str, Any]:
        meta = self.register_client_meta(
            request.endpoint_id,
            app_type=request.data.get("appType"),
            app_name=request.data.get("appName"),
        )
        self._log.info(
            f"Client registered: {meta.app_name or meta.app_type or request.endpoint_id}",
            extra={"endpoint_id": request.endpoint_id, "app_type": meta.app_type},
        )
        return {
            "success": True,
            "endpointId": request.endpoint_id,
            "totalClients": len(self._client_meta),
        }

    def _handle_ping(self, request: HubRequest) -> dict[str, Any]:
        return {
            "pong": True,
            "timestamp": now_ms(),
            "endpointId": request.endpoint_id,
            "activeClients": len(self._channels),
        }

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    async def broadcast_to_all(
        self, event_name: str, data: dict[str, Any] | None = None, exclude_id: str | None = None
    ) -> int:
        """Broadcast to every live, registered endpoint.

        Returns:
            Number of endpoints the broadcast was handed to.
        """
        payload = {**(data or {}), "_fromHub": True, "_timestamp": now_ms()}
        return await self._fan_out(event_name, payload, exclude_id)

    async def broadcast_to_type(
        self,
        app_type: str,
        event_name: str,
        data: dict[str, Any] | None = None,
        exclude_id: str | None = None,
    ) -> int:
        """Broadcast to live endpoints that registered with ``app_type``."""
        payload = {
            **(data or {}),
            "_fromHub": True,
            "_targetType": app_type,
            "_timestamp": now_ms(),
        }
        return await self._fan_out(event_name, payload, exclude_id, app_type)

    async def _fan_out(
        self,
        event_name: str,
        payload: dict[str, Any],
        exclude_id: str | None,
        app_type: str | None = None,
    ) -> int:
        if not self._initialized:
            self._log.warning("Broadcast ignored: hub not started", extra={"cmdname": event_name})
            return 0

        try:
            live = await self.host.enumerate_live_endpoints()
        except Exception as e:
            self._log.error(f"Failed to enumerate endpoints: {e}", extra={"error": str(e)})
            return 0

        sent = 0
        for endpoint_id in live:
            if exclude_id is not None and endpoint_id == exclude_id:
                continue
            if app_type is not None:
                meta = self._client_meta.get(endpoint_id)
                if meta is None or meta.app_type != app_type:
                    continue

            channel = self._channels.get(endpoint_id)
            if channel is None:
                continue
            try:
                if channel.broadcast(event_name, payload):
                    sent += 1
            except Exception as e:
                self._log.warning(
                    f"Failed to broadcast to endpoint: {e}",
                    extra={"endpoint_id": endpoint_id, "cmdname": event_name, "error": str(e)},
                )
        return sent

    async def notify_activated(self) -> int:
        """Tell every live endpoint the hub (re)started.

        Sent through the host directly: after a restart the hub has no
        channels yet. Returns the number of endpoints notified.
        """
        try:
            live = await self.host.enumerate_live_endpoints()
        except Exception as e:
            self._log.error(f"Failed to enumerate endpoints: {e}", extra={"error": str(e)})
            return 0

        message = {
            "cmdname": ACTIVATED_EVENT,
            "data": {"version": self.config.version},
            "broadcast": True,
        }
        notified = 0
        for endpoint_id in live:
            try:
                self.host.post_message(endpoint_id, message)
                notified += 1
            except Exception as e:
                self._log.warning(
                    f"Failed to notify endpoint: {e}",
                    extra={"endpoint_id": endpoint_id, "error": str(e)},
                )
        self._log.info(f"Notified {notified} endpoints of activation", extra={"notified": notified})
        return notified

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def _cleanup_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.cleanup_inactive()

    async def cleanup_inactive(self) -> list[str]:
        """Destroy channels whose endpoint is no longer live.

        Returns:
            The endpoint ids that were removed.
        """
        try:
            live = set(await self.host.enumerate_live_endpoints())
        except Exception as e:
            self._log.error(f"Cleanup failed: {e}", extra={"error": str(e)})
            return []

        removed = []
        for endpoint_id, channel in list(self._channels.items()):
            if endpoint_id in live:
                continue
            del self._channels[endpoint_id]
            self._client_meta.pop(endpoint_id, None)
            channel.destroy()
            self._notify_disconnect(endpoint_id)
            removed.append(endpoint_id)
            self._log.info("Cleaned up inactive endpoint", extra={"endpoint_id": endpoint_id})
        return removed
