"""Transport adapters for duplexline."""

from duplexline.adapters.base import Dispatch, HubHost, MessageEvent, Transport
from duplexline.adapters.endpoint import EndpointTransport
from duplexline.adapters.inmemory import InMemoryEndpointTransport, InMemoryHost, InMemoryTransport

__all__ = [
    "Dispatch",
    "EndpointTransport",
    "HubHost",
    "InMemoryEndpointTransport",
    "InMemoryHost",
    "InMemoryTransport",
    "MessageEvent",
    "Transport",
]
