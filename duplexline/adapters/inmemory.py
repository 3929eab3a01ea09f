"""In-memory transports for development and testing.

Messages are JSON-cloned (no shared references between sender and receiver)
and delivered asynchronously on the running event loop, one task per
message, so delivery order across messages is not guaranteed to be
synchronous with the send call. No durability: undelivered messages are
lost when the loop stops.
"""

import asyncio
import json
import logging
from typing import Any, Coroutine
from uuid import uuid4

from duplexline.adapters.base import Dispatch, MessageEvent
from duplexline.core.errors import TransmissionFailedError

logger = logging.getLogger("duplexline.adapters.inmemory")


def _clone(envelope: dict[str, Any]) -> dict[str, Any]:
    try:
        return json.loads(json.dumps(envelope))
    except (TypeError, ValueError) as e:
        raise TransmissionFailedError(f"Envelope is not JSON-serializable: {e}") from e


def _spawn(tasks: set[asyncio.Task], coro: Coroutine[Any, Any, None]) -> None:
    task = asyncio.get_running_loop().create_task(coro)
    tasks.add(task)
    task.add_done_callback(tasks.discard)


async def _drain(tasks: set[asyncio.Task]) -> None:
    while tasks:
        await asyncio.gather(*list(tasks), return_exceptions=True)


class InMemoryTransport:
    """One end of a linked point-to-point pair.

    Use ``InMemoryTransport.pair()`` to create two linked ends.

    Args:
        name: Source identity stamped on delivered events.
        latency_ms: Artificial delay before each delivery.
    """

    def __init__(self, name: str | None = None, latency_ms: float = 0) -> None:
        self.name = name or f"mem-{uuid4().hex[:8]}"
        self.latency_ms = latency_ms
        self.peer: "InMemoryTransport | None" = None
        self.sent: list[dict[str, Any]] = []
        self._dispatch: Dispatch | None = None
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def pair(cls, latency_ms: float = 0) -> tuple["InMemoryTransport", "InMemoryTransport"]:
        left, right = cls(latency_ms=latency_ms), cls(latency_ms=latency_ms)
        left.peer, right.peer = right, left
        return left, right

    @property
    def listening(self) -> bool:
        return self._dispatch is not None

    def setup_listener(self, dispatch: Dispatch) -> None:
        self._dispatch = dispatch

    def teardown_listener(self) -> None:
        self._dispatch = None

    def send_raw(self, envelope: dict[str, Any], hints: dict[str, Any] | None = None) -> None:
        if self.peer is None:
            raise TransmissionFailedError("Transport is not linked to a peer")

        data = _clone(envelope)
        self.sent.append(data)
        self.peer._deliver(MessageEvent(data=data, source=self.name, meta=dict(hints or {})))

    def is_valid_source(self, event: MessageEvent) -> bool:
        return self.peer is not None and event.source == self.peer.name

    def _deliver(self, event: MessageEvent) -> None:
        _spawn(self._tasks, self._run(event))

    async def _run(self, event: MessageEvent) -> None:
        if self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000)
        # Resolve at delivery time: the listener may have been torn down meanwhile
        dispatch = self._dispatch
        if dispatch is None:
            logger.debug("Dropped message, no listener installed", extra={"source": event.source})
            return
        await dispatch(event)

    async def drain(self) -> None:
        """Wait until every in-flight delivery on both ends has finished."""
        while self._tasks or (self.peer is not None and self.peer._tasks):
            await _drain(self._tasks)
            if self.peer is not None:
                await _drain(self.peer._tasks)


class InMemoryEndpointTransport:
    """Endpoint-side transport talking to an ``InMemoryHost``.

    Created by ``InMemoryHost.connect``; not constructed directly.
    """

    def __init__(self, host: "InMemoryHost", endpoint_id: str) -> None:
        self.host = host
        self.endpoint_id = endpoint_id
        self._dispatch: Dispatch | None = None
        self._tasks: set[asyncio.Task] = set()

    def setup_listener(self, dispatch: Dispatch) -> None:
        self._dispatch = dispatch

    def teardown_listener(self) -> None:
        self._dispatch = None

    def send_raw(self, envelope: dict[str, Any], hints: dict[str, Any] | None = None) -> None:
        if not self.host.is_connected(self.endpoint_id):
            raise TransmissionFailedError(f"Endpoint {self.endpoint_id} is disconnected")
        self.host._from_endpoint(self.endpoint_id, _clone(envelope))

    def is_valid_source(self, event: MessageEvent) -> bool:
        return event.source == self.host.host_id

    def _receive(self, data: dict[str, Any]) -> None:
        _spawn(self._tasks, self._run(MessageEvent(data=data, source=self.host.host_id)))

    async def _run(self, event: MessageEvent) -> None:
        dispatch = self._dispatch
        if dispatch is not None:
            await dispatch(event)


class InMemoryHost:
    """Hub host keeping a directory of connected in-memory endpoints.

    Args:
        host_id: Source identity stamped on events the host delivers to endpoints.
    """

    def __init__(self, host_id: str = "hub") -> None:
        self.host_id = host_id
        self._endpoints: dict[str, InMemoryEndpointTransport] = {}
        self._listeners: list[Dispatch] = []
        self._tasks: set[asyncio.Task] = set()

    def connect(self, endpoint_id: str | None = None) -> InMemoryEndpointTransport:
        """Attach a new endpoint and return its transport."""
        endpoint_id = endpoint_id or uuid4().hex
        transport = InMemoryEndpointTransport(self, endpoint_id)
        self._endpoints[endpoint_id] = transport
        logger.debug("Endpoint connected", extra={"endpoint_id": endpoint_id})
        return transport

    def disconnect(self, endpoint_id: str) -> None:
        if self._endpoints.pop(endpoint_id, None) is not None:
            logger.debug("Endpoint disconnected", extra={"endpoint_id": endpoint_id})

    def is_connected(self, endpoint_id: str) -> bool:
        return endpoint_id in self._endpoints

    async def enumerate_live_endpoints(self) -> list[str]:
        return list(self._endpoints)

    def post_message(self, endpoint_id: str, envelope: dict[str, Any]) -> None:
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            raise TransmissionFailedError(f"Endpoint {endpoint_id} is not connected")
        endpoint._receive(_clone(envelope))

    def add_message_listener(self, listener: Dispatch) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_message_listener(self, listener: Dispatch) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _from_endpoint(self, endpoint_id: str, data: dict[str, Any]) -> None:
        event = MessageEvent(data=data, source=endpoint_id, origin=self.host_id)
        for listener in list(self._listeners):
            _spawn(self._tasks, listener(event))

    async def drain(self) -> None:
        """Wait until every in-flight delivery, in either direction, has finished."""

        def busy() -> bool:
            return bool(self._tasks) or any(e._tasks for e in self._endpoints.values())

        while busy():
            await _drain(self._tasks)
            for endpoint in list(self._endpoints.values()):
                await _drain(endpoint._tasks)
