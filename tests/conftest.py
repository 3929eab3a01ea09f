"""Pytest configuration, Hypothesis profiles and shared test transports."""

import asyncio
from typing import Any

import pytest
from hypothesis import settings

from duplexline.adapters.base import Dispatch, MessageEvent
from duplexline.core.errors import TransmissionFailedError

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100)
settings.register_profile("dev", max_examples=20)

# Load dev profile by default, CI can override via --hypothesis-profile=ci
settings.load_profile("dev")

PEER_KEY = "peer_test_"


class RecordingTransport:
    """Transport that records outbound envelopes and lets tests inject inbound ones."""

    def __init__(self, peer_source: str = "peer") -> None:
        self.peer_source = peer_source
        self.sent: list[dict[str, Any]] = []
        self.hints: list[dict[str, Any] | None] = []
        self.dispatch: Dispatch | None = None
        self.torn_down = False
        self.fail_sends = False

    def setup_listener(self, dispatch: Dispatch) -> None:
        self.dispatch = dispatch

    def teardown_listener(self) -> None:
        self.dispatch = None
        self.torn_down = True

    def send_raw(self, envelope: dict[str, Any], hints: dict[str, Any] | None = None) -> None:
        if self.fail_sends:
            raise TransmissionFailedError("simulated send failure")
        self.sent.append(envelope)
        self.hints.append(hints)

    def is_valid_source(self, event: MessageEvent) -> bool:
        return event.source == self.peer_source

    async def deliver(self, data: Any, source: str | None = None) -> None:
        """Hand ``data`` to the channel as if it came from the peer."""
        assert self.dispatch is not None, "no listener installed"
        await self.dispatch(MessageEvent(data=data, source=source or self.peer_source))

    def requests(self, cmdname: str | None = None) -> list[dict[str, Any]]:
        return [
            m
            for m in self.sent
            if "cmdname" in m and "ret" not in m and (cmdname is None or m["cmdname"] == cmdname)
        ]

    def responses(self) -> list[dict[str, Any]]:
        return [m for m in self.sent if "ret" in m]

    @property
    def last(self) -> dict[str, Any]:
        return self.sent[-1]


async def complete_handshake(transport: RecordingTransport, peer_key: str = PEER_KEY) -> None:
    """Deliver a fresh ready handshake from ``peer_key``."""
    await transport.deliver({"requestId": f"{peer_key}0", "msg": "ready", "senderKey": peer_key})


def response_to(request: dict[str, Any], peer_key: str = PEER_KEY, **fields: Any) -> dict[str, Any]:
    """Build the peer's response envelope for a recorded request."""
    return {"requestId": request["requestId"], "ret": 0, "senderKey": peer_key, **fields}


async def settle() -> None:
    """Let pending delivery tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


async def eventually(predicate, timeout: float = 1.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` seconds pass."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio."""
    return "asyncio"
