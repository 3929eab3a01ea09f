"""Redis pub/sub transport for duplexline."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from duplexline.adapters.base import Dispatch, MessageEvent
from duplexline.core.errors import TransmissionFailedError

try:
    import redis.asyncio as redis
except ImportError as e:
    raise ImportError(
        "Redis transport requires the 'redis' package. "
        "Install it with: pip install duplexline[redis]"
    ) from e


class RedisTransport:
    """Point-to-point transport over Redis pub/sub.

    Each endpoint listens on its own Redis channel ``{prefix}:{endpoint_id}``
    and publishes frames ``{"source": endpoint_id, "data": envelope}`` to its
    peer's channel. Outbound frames go through a single writer task so they
    reach Redis in send order.

    Call ``connect()`` before constructing the ``Channel`` and ``close()``
    after destroying it.

    Args:
        endpoint_id: This endpoint's identity.
        peer_id: The only endpoint whose frames are accepted.
        url: Redis connection URL (default: redis://localhost:6379)
        prefix: Redis channel name prefix (default: duplexline)
    """

    def __init__(
        self,
        endpoint_id: str,
        peer_id: str,
        url: str = "redis://localhost:6379",
        prefix: str = "duplexline",
    ) -> None:
        self.endpoint_id = endpoint_id
        self.peer_id = peer_id
        self._url = url
        self._prefix = prefix
        self._client: redis.Redis | None = None
        self._pubsub: Any = None
        self._dispatch: Dispatch | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._reader: asyncio.Task | None = None
        self._writer: asyncio.Task | None = None
        self._deliveries: set[asyncio.Task] = set()
        self._log = logging.getLogger("duplexline.adapters.redis")

    def channel_for(self, endpoint_id: str) -> str:
        return f"{self._prefix}:{endpoint_id}"

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Connect, subscribe to this endpoint's channel and start the I/O tasks."""
        if self._client is not None:
            return

        self._client = redis.from_url(self._url)
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self.channel_for(self.endpoint_id))
        self._outbox = asyncio.Queue()
        self._reader = asyncio.create_task(self._read_loop())
        self._writer = asyncio.create_task(self._write_loop())
        self._log.debug("Connected to Redis at %s", self._url)

    def setup_listener(self, dispatch: Dispatch) -> None:
        self._dispatch = dispatch

    def teardown_listener(self) -> None:
        self._dispatch = None

    def send_raw(self, envelope: dict[str, Any], hints: dict[str, Any] | None = None) -> None:
        if self._outbox is None:
            raise TransmissionFailedError("Redis transport is not connected")
        try:
            frame = json.dumps({"source": self.endpoint_id, "data": envelope})
        except (TypeError, ValueError) as e:
            raise TransmissionFailedError(f"Envelope is not JSON-serializable: {e}") from e
        self._outbox.put_nowait(frame)

    def is_valid_source(self, event: MessageEvent) -> bool:
        return event.source == self.peer_id

    async def _write_loop(self) -> None:
        target = self.channel_for(self.peer_id)
        while True:
            frame = await self._outbox.get()
            try:
                await self._client.publish(target, frame)
            except Exception as e:
                self._log.error(
                    f"Failed to publish to {target}: {e}",
                    extra={"endpoint_id": self.endpoint_id, "error": str(e)},
                )

    async def _read_loop(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue

            raw = message["data"]
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            try:
                frame = json.loads(raw)
            except ValueError:
                self._log.warning("Dropped non-JSON frame", extra={"endpoint_id": self.endpoint_id})
                continue
            if not isinstance(frame, dict):
                continue

            dispatch = self._dispatch
            if dispatch is None:
                continue
            event = MessageEvent(
                data=frame.get("data"),
                source=frame.get("source"),
                origin=self.channel_for(self.endpoint_id),
            )
            # Handlers may await further traffic, so never block the reader on one
            task = asyncio.create_task(dispatch(event))
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)

    async def close(self) -> None:
        """Stop the I/O tasks and close the Redis connection."""
        for task in (self._reader, self._writer):
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reader = self._writer = None
        self._outbox = None

        if self._pubsub is not None:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._log.debug("Closed Redis connection")
