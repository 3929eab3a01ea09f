"""Endpoint-side helper that registers a Channel with a Hub."""

import asyncio
import logging
from typing import Any

from duplexline.core.channel import Channel
from duplexline.core.emitter import ChannelEvent
from duplexline.core.envelope import Envelope
from duplexline.core.errors import ChannelError
from duplexline.hub import ACTIVATED_EVENT, REGISTER_CMD

logger = logging.getLogger("duplexline.hub_client")


class HubClient:
    """Registers an endpoint with its Hub and re-registers after a hub restart.

    When the hub announces a restart the client emits ``hub-activated`` on the
    channel and, with ``auto_reconnect``, resets pairing and registers again.

    Args:
        channel: The endpoint's channel to the hub.
        app_type: Declared application type (used by ``broadcast_to_type``).
        app_name: Declared human-readable name.
        auto_reconnect: Re-register automatically on hub activation.
    """

    def __init__(
        self,
        channel: Channel,
        app_type: str | None = None,
        app_name: str | None = None,
        auto_reconnect: bool = True,
    ) -> None:
        self.channel = channel
        self.app_type = app_type
        self.app_name = app_name
        self.auto_reconnect = auto_reconnect
        self._registered = False
        self._registration: dict[str, Any] | None = None
        self._in_flight: asyncio.Future[dict[str, Any]] | None = None
        self._reconnect_task: asyncio.Task | None = None

        channel.on_broadcast(ACTIVATED_EVENT, self._on_hub_activated)

    @property
    def is_registered(self) -> bool:
        return self._registered

    @property
    def registration(self) -> dict[str, Any] | None:
        """The hub's reply to the last successful registration."""
        return self._registration

    async def register(self, timeout_ms: float | None = None) -> dict[str, Any]:
        """Wait for pairing, then send ``__register__``.

        Concurrent calls share one registration round-trip.

        Raises:
            ChannelError: Pairing or the registration call failed.
        """
        if self._in_flight is None or self._in_flight.done():
            self._in_flight = asyncio.ensure_future(self._register(timeout_ms))
        return await asyncio.shield(self._in_flight)

    async def _register(self, timeout_ms: float | None) -> dict[str, Any]:
        await self.channel.wait_ready(timeout_ms)
        params = {"appType": self.app_type, "appName": self.app_name}
        result = await self.channel.call(
            REGISTER_CMD, {k: v for k, v in params.items() if v is not None}, timeout_ms=timeout_ms
        )
        self._registered = True
        self._registration = result
        logger.info(
            "Registered with hub",
            extra={"self_key": self.channel.self_key, "total_clients": result.get("totalClients")},
        )
        return result

    def _on_hub_activated(self, envelope: Envelope) -> None:
        version = (envelope.data or {}).get("version")
        self.channel.events.emit(ChannelEvent.HUB_ACTIVATED, {"version": version})
        if not self.auto_reconnect or self.channel.is_destroyed:
            return

        self._registered = False
        self.channel.reset_pairing()
        # Runs outside dispatch: registration awaits later inbound messages
        self._reconnect_task = asyncio.create_task(self._reregister())

    async def _reregister(self) -> None:
        try:
            await self.register()
        except ChannelError as e:
            logger.warning(
                f"Re-registration after hub activation failed: {e}",
                extra={"self_key": self.channel.self_key, "error": str(e)},
            )
