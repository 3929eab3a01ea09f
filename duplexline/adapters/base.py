"""Adapter protocols between channels and the physical transport.

Channels never deliver bytes themselves. A ``Transport`` owns the physical
listener and the send primitive; it hands every inbound message to the
channel's single dispatch entry point as a ``MessageEvent`` and answers
whether the event's source is acceptable.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol


@dataclass(frozen=True)
class MessageEvent:
    """One inbound message as delivered by a transport.

    Attributes:
        data: The raw wire envelope (normally a dict, unvalidated).
        source: Identity of the sending endpoint, when the transport knows it.
        origin: Transport-specific origin label (e.g. a URL or a channel name).
        meta: Extra transport details, never inspected by the channel.
    """

    data: Any
    source: str | None = None
    origin: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


Dispatch = Callable[[MessageEvent], Awaitable[None]]


class Transport(Protocol):
    """Protocol every point-to-point transport adapter implements.

    Adapters are responsible for:
    - Installing and removing the physical listener
    - Sending one wire envelope (may raise ``TransmissionFailedError``)
    - Layer-1 filtering of inbound events by source
    """

    def setup_listener(self, dispatch: Dispatch) -> None:
        """Start delivering inbound events to ``dispatch``."""
        ...

    def teardown_listener(self) -> None:
        """Stop delivering inbound events."""
        ...

    def send_raw(self, envelope: dict[str, Any], hints: dict[str, Any] | None = None) -> None:
        """Send one wire envelope.

        Args:
            envelope: Plain dict with camelCase keys.
            hints: Optional side-channel hints (e.g. buffers to transfer).
        """
        ...

    def is_valid_source(self, event: MessageEvent) -> bool:
        """Whether ``event`` came from the expected peer."""
        ...


class HubHost(Protocol):
    """What a Hub needs from the process hosting many endpoints."""

    async def enumerate_live_endpoints(self) -> list[str]:
        """Ids of the endpoints currently connected to the host."""
        ...

    def post_message(self, endpoint_id: str, envelope: dict[str, Any]) -> None:
        """Send one wire envelope to one endpoint."""
        ...

    def add_message_listener(self, listener: Dispatch) -> None:
        """Route every inbound event from any endpoint to ``listener``."""
        ...

    def remove_message_listener(self, listener: Dispatch) -> None:
        ...
