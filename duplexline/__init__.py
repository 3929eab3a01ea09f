"""duplexline - Duplex request/response RPC over one-way message passing."""

from duplexline.adapters import (
    EndpointTransport,
    HubHost,
    InMemoryHost,
    InMemoryTransport,
    MessageEvent,
    Transport,
)
from duplexline.core import (
    Channel,
    ChannelConfig,
    ChannelError,
    ChannelEvent,
    ConnectionDestroyedError,
    Envelope,
    ErrorCode,
    HubConfig,
    ReturnCode,
)
from duplexline.hub import ClientMeta, Hub, HubRequest
from duplexline.hub_client import HubClient

__version__ = "0.1.0"

__all__ = [
    # Core
    "Channel",
    "Envelope",
    "ReturnCode",
    "ChannelEvent",
    # Configuration
    "ChannelConfig",
    "HubConfig",
    # Errors
    "ChannelError",
    "ConnectionDestroyedError",
    "ErrorCode",
    # Hub
    "Hub",
    "HubClient",
    "HubRequest",
    "ClientMeta",
    # Adapters
    "Transport",
    "HubHost",
    "MessageEvent",
    "EndpointTransport",
    "InMemoryTransport",
    "InMemoryHost",
    # Meta
    "__version__",
]
