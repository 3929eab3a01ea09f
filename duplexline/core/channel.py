"""Channel engine: one duplex request/response conversation with one peer.

A Channel turns a one-way, unordered send primitive (the ``Transport``) into
a point-to-point RPC channel:
- a ready handshake pairs this channel with exactly one remote channel
- ``publish`` correlates each request with its response by ``request_id``
- one shared timer enforces every request deadline
- inbound messages pass three filters: transport source, envelope
  structure, and peer pairing
- ``destroy`` settles everything synchronously

IMPORTANT: a timed-out request RESOLVES with ``ret=ReturnCode.TIMEOUT``;
it never fails. Use ``call`` for exception-style results.
"""

import asyncio
import inspect
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from duplexline.adapters.base import MessageEvent, Transport
from duplexline.core.config import ChannelConfig
from duplexline.core.emitter import ChannelEvent, EventEmitter, EventHandler
from duplexline.core.envelope import READY_MSG, Envelope, ReturnCode, now_ms
from duplexline.core.errors import (
    ChannelError,
    ConnectionDestroyedError,
    ConnectionTimeoutError,
    InvalidMessageError,
    MessageSizeExceededError,
    MethodNotFoundError,
    RateLimitExceededError,
    TransmissionFailedError,
    connection_destroyed_error,
    handler_error,
    timeout_error,
)
from duplexline.core.logging import configure_channel_logger
from duplexline.core.ratelimit import SlidingWindowRateLimiter
from duplexline.core.timeouts import TimeoutScheduler
from duplexline.core.validators import estimate_message_size, validate_message

HandlerResult = dict[str, Any] | None
Handler = Callable[[Envelope], HandlerResult | Awaitable[HandlerResult]]
BroadcastHandler = Callable[[Envelope], Any]

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if not value:
            break
    return "".join(reversed(digits))


def generate_unique_id(prefix: str) -> str:
    """Unique key like ``ch_m1abc123f00dcafe4b2e_``.

    The trailing underscore keeps ``key + counter`` request ids from one
    channel from ever prefix-matching another channel's key.
    """
    return f"{prefix}{_to_base36(int(time.time() * 1000))}{secrets.token_hex(6)}_"


class ChannelState(Enum):
    """Pairing state machine. DESTROYED is terminal."""

    INITIALIZING = "initializing"
    AWAITING_PEER = "awaiting_peer"
    PAIRED = "paired"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class NoReply:
    """Handler returned nothing; the request is acknowledged without data."""


@dataclass(frozen=True)
class Reply:
    """Handler returned a payload to send back."""

    value: dict[str, Any]


@dataclass(frozen=True)
class Failure:
    """Handler raised or returned something unsendable."""

    error: Exception


HandlerOutcome = NoReply | Reply | Failure


@dataclass
class _Pending:
    request_id: str
    cmdname: str
    future: "asyncio.Future[Envelope]"


@dataclass
class _QueuedTask:
    envelope: Envelope
    timeout_ms: float | None
    hints: dict[str, Any] | None


class Channel:
    """Duplex request/response channel bound to one transport.

    Must be constructed inside a running event loop: construction installs
    the transport listener and sends the ready handshake.

    Args:
        transport: The adapter delivering and sending raw envelopes.
        config: Channel settings. Defaults to ``ChannelConfig()``.
        subscriptions: Handlers to register up front, keyed by cmdname.
    """

    def __init__(
        self,
        transport: Transport,
        config: ChannelConfig | None = None,
        subscriptions: dict[str, Handler] | None = None,
    ) -> None:
        self.transport = transport
        self.config = config or ChannelConfig()
        self._log = configure_channel_logger()

        self._self_key = generate_unique_id(self.config.key_prefix)
        self._peer_key = ""
        self._counter = 0
        self._state = ChannelState.INITIALIZING

        self._pending: dict[str, _Pending] = {}
        # Insertion order is publish order
        self._queue: dict[str, _QueuedTask] = {}
        self._subscriptions: dict[str, Handler] = dict(subscriptions or {})
        self._broadcast_handlers: dict[str, BroadcastHandler] = {}

        self._timeouts = TimeoutScheduler()
        self._rate_limiter = SlidingWindowRateLimiter(self.config.rate_limit_per_second, 1000)
        self._events = EventEmitter()
        self._ready_event = asyncio.Event()

        self._init()

    def _init(self) -> None:
        self.transport.setup_listener(self.handle_message)
        self._state = ChannelState.AWAITING_PEER
        self._post(Envelope(request_id=f"{self._self_key}{self._counter}", msg=READY_MSG))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def self_key(self) -> str:
        return self._self_key

    @property
    def peer_key(self) -> str:
        return self._peer_key

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ChannelState.PAIRED

    @property
    def is_destroyed(self) -> bool:
        return self._state is ChannelState.DESTROYED

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def events(self) -> EventEmitter:
        return self._events

    def has_subscription(self, cmdname: str) -> bool:
        return cmdname in self._subscriptions

    def get_rate_limit_stats(self) -> dict[str, float]:
        return {
            "current": self._rate_limiter.get_current_count(),
            "limit": self._rate_limiter.limit,
            "remaining": self._rate_limiter.get_remaining_capacity(),
        }

    def on(self, event: ChannelEvent | str, handler: EventHandler) -> Callable[[], None]:
        return self._events.on(event, handler)

    def once(self, event: ChannelEvent | str, handler: EventHandler) -> Callable[[], None]:
        return self._events.once(event, handler)

    def off(self, event: ChannelEvent | str, handler: EventHandler) -> bool:
        return self._events.off(event, handler)

    def _extra(self, **fields: Any) -> dict[str, Any]:
        return {"self_key": self._self_key, "peer_key": self._peer_key, **fields}

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _next_request_id(self) -> str:
        self._counter += 1
        return f"{self._self_key}{self._counter}"

    def _prepare(self, envelope: Envelope) -> dict[str, Any]:
        """Stamp time and sender key, encode, then enforce the size limit."""
        try:
            wire = envelope.model_copy(
                update={"time": now_ms(), "sender_key": self._self_key}
            ).to_wire()
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise InvalidMessageError(
                f"Envelope is not JSON-serializable: {e}",
                details={"cmdname": envelope.cmdname, "request_id": envelope.request_id},
            ) from e

        limit = self.config.max_message_size_bytes
        if limit > 0:
            size = estimate_message_size(wire)
            if size > limit:
                error = MessageSizeExceededError(
                    f"Message size ({size} bytes) exceeds limit ({limit} bytes)",
                    details={"size": size, "limit": limit},
                )
                self._events.emit(
                    ChannelEvent.ERROR, {"error": error, "context": "validate_message_size"}
                )
                raise error
        return wire

    def _check_rate_limit(self) -> bool:
        if self._rate_limiter.try_acquire():
            return True

        current = self._rate_limiter.get_current_count()
        limit = self._rate_limiter.limit
        self._log.warning(
            f"Rate limit exceeded: {current}/{limit} messages per second, message dropped",
            extra=self._extra(current_count=current, limit=limit),
        )
        self._events.emit(
            ChannelEvent.RATE_LIMITED,
            {
                "current_count": current,
                "limit": limit,
                "error": RateLimitExceededError(
                    "Rate limit exceeded", details={"current_count": current, "limit": limit}
                ),
            },
        )
        return False

    def _transmit(self, wire: dict[str, Any], hints: dict[str, Any] | None = None) -> bool:
        """Hand one prepared envelope to the transport. Never raises."""
        if not self._check_rate_limit():
            return False
        try:
            self.transport.send_raw(wire, hints)
        except Exception as e:
            error = e if isinstance(e, ChannelError) else TransmissionFailedError(str(e))
            self._log.error(
                f"Transport send failed: {e}",
                extra=self._extra(request_id=wire.get("requestId"), error=str(e)),
            )
            self._events.emit(ChannelEvent.ERROR, {"error": error, "context": "send"})
            return False
        return True

    def _post(self, envelope: Envelope, hints: dict[str, Any] | None = None) -> bool:
        """Prepare and transmit, logging instead of raising."""
        if self._state is ChannelState.DESTROYED:
            return False
        try:
            wire = self._prepare(envelope)
        except (MessageSizeExceededError, InvalidMessageError) as e:
            self._log.error(
                f"Outbound message dropped: {e}",
                extra=self._extra(request_id=envelope.request_id, cmdname=envelope.cmdname),
            )
            return False

        sent = self._transmit(wire, hints)
        if sent:
            self._events.emit(
                ChannelEvent.MESSAGE_SENT,
                {"cmdname": envelope.cmdname or "", "request_id": envelope.request_id or ""},
            )
        return sent

    def publish(
        self,
        cmdname: str,
        data: dict[str, Any] | None = None,
        *,
        timeout_ms: float | None = None,
        hints: dict[str, Any] | None = None,
    ) -> "asyncio.Future[Envelope]":
        """Send a request and return a future resolving with the response.

        Before pairing the request is queued and transmitted, in publish
        order, as soon as the handshake completes.

        Args:
            cmdname: Command name the peer subscribed to.
            data: JSON-compatible payload.
            timeout_ms: Per-call deadline, overriding the channel default.
            hints: Side-channel hints passed through to the transport.

        Returns:
            Future resolving with the response envelope, or with a synthetic
            envelope whose ``ret`` is ``ReturnCode.TIMEOUT``.

        Raises:
            ConnectionDestroyedError: The channel has been destroyed.
            MessageSizeExceededError: The encoded request is over the size limit.
            InvalidMessageError: ``data`` is not a JSON-serializable dict.
        """
        if self._state is ChannelState.DESTROYED:
            raise ConnectionDestroyedError(
                "Cannot publish: channel has been destroyed", details={"cmdname": cmdname}
            )

        try:
            envelope = Envelope(request_id=self._next_request_id(), cmdname=cmdname, data=data)
        except ValidationError as e:
            raise InvalidMessageError(
                f"Invalid publish payload for {cmdname!r}: {e.errors()[0]['msg']}",
                details={"cmdname": cmdname},
            ) from e

        # Fail fast before any bookkeeping exists
        self._prepare(envelope)

        request_id = envelope.request_id
        future: asyncio.Future[Envelope] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _Pending(request_id, cmdname, future)

        if self._state is ChannelState.PAIRED:
            self._dispatch(envelope, timeout_ms, hints)
        else:
            self._queue[request_id] = _QueuedTask(envelope, timeout_ms, hints)
            self._log.debug(
                f"Queued {cmdname} until pairing completes",
                extra=self._extra(request_id=request_id, cmdname=cmdname),
            )
        return future

    def _dispatch(
        self, envelope: Envelope, timeout_ms: float | None, hints: dict[str, Any] | None
    ) -> None:
        request_id = envelope.request_id
        timeout = timeout_ms if timeout_ms is not None else self.config.request_timeout_ms
        self._timeouts.add(request_id, timeout, lambda: self._on_timeout(request_id, timeout))
        self._post(envelope, hints)

    def _on_timeout(self, request_id: str, timeout_ms: float) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return

        self._log.error(
            f"Request {pending.cmdname} timed out after {timeout_ms}ms",
            extra=self._extra(request_id=request_id, cmdname=pending.cmdname),
        )
        self._events.emit(
            ChannelEvent.TIMEOUT,
            {"request_id": request_id, "cmdname": pending.cmdname, "timeout_ms": timeout_ms},
        )
        if not pending.future.done():
            pending.future.set_result(
                Envelope(
                    request_id=request_id,
                    cmdname=pending.cmdname,
                    ret=ReturnCode.TIMEOUT,
                    msg="timeout",
                    time=now_ms(),
                )
            )

    def _flush_queue(self) -> None:
        tasks = list(self._queue.values())
        self._queue.clear()
        for task in tasks:
            if task.envelope.request_id in self._pending:
                self._dispatch(task.envelope, task.timeout_ms, task.hints)

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_ms: float | None = None,
    ) -> dict[str, Any]:
        """Publish and return the response data, raising on any failure code.

        Raises:
            MethodCallTimeoutError: No response before the deadline.
            MethodNotFoundError: The peer has no handler for ``method``.
            HandlerError: The peer's handler raised.
            TransmissionFailedError: Any other non-success code.
        """
        response = await self.publish(method, params, timeout_ms=timeout_ms)

        if response.ret == ReturnCode.SUCCESS:
            return response.data or {}
        if response.ret == ReturnCode.TIMEOUT:
            raise timeout_error(
                method, timeout_ms if timeout_ms is not None else self.config.request_timeout_ms
            )
        if response.ret == ReturnCode.NO_SUBSCRIBE:
            raise MethodNotFoundError(
                f'No handler registered for "{method}"', details={"cmdname": method}
            )
        if response.ret == ReturnCode.RECEIVER_CALLBACK_ERROR:
            raise handler_error(method, response.msg or "")
        raise TransmissionFailedError(
            f'Request "{method}" failed with return code {response.ret}',
            details={"cmdname": method, "ret": response.ret},
        )

    def broadcast(self, event_name: str, data: dict[str, Any] | None = None) -> bool:
        """Send a one-way message. No correlation, no response.

        Returns:
            True if the message reached the transport, False if it was
            rate limited or the transport failed.

        Raises:
            ConnectionDestroyedError: The channel has been destroyed.
            MessageSizeExceededError: The encoded message is over the size limit.
        """
        if self._state is ChannelState.DESTROYED:
            raise ConnectionDestroyedError(
                "Cannot broadcast: channel has been destroyed", details={"cmdname": event_name}
            )

        wire = self._prepare(Envelope(cmdname=event_name, data=data, broadcast=True))
        sent = self._transmit(wire)
        if sent:
            self._events.emit(ChannelEvent.BROADCAST_SENT, {"cmdname": event_name})
        return sent

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, cmdname: str, handler: Handler) -> "Channel":
        if cmdname in self._subscriptions:
            self._log.warning(
                f"{cmdname} has been subscribed, replacing handler",
                extra=self._extra(cmdname=cmdname),
            )
        self._subscriptions[cmdname] = handler
        return self

    def unsubscribe(self, cmdname: str) -> "Channel":
        self._subscriptions.pop(cmdname, None)
        return self

    def subscribe_once(self, cmdname: str, handler: Handler) -> "Channel":
        """Subscribe for exactly one invocation.

        The subscription is removed before ``handler`` runs, so a second
        request is answered with ``NO_SUBSCRIBE`` even if the first one raised.
        """

        def wrapper(envelope: Envelope) -> HandlerResult | Awaitable[HandlerResult]:
            if self._subscriptions.get(cmdname) is wrapper:
                self.unsubscribe(cmdname)
            return handler(envelope)

        return self.subscribe(cmdname, wrapper)

    def on_broadcast(self, event_name: str, handler: BroadcastHandler) -> "Channel":
        self._broadcast_handlers[event_name] = handler
        return self

    def off_broadcast(self, event_name: str) -> "Channel":
        self._broadcast_handlers.pop(event_name, None)
        return self

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def _is_from_peer(self, envelope: Envelope) -> bool:
        if not self._peer_key:
            return True
        if envelope.sender_key and envelope.sender_key != self._peer_key:
            self._log.debug(
                "Message from non-paired channel, ignored",
                extra=self._extra(sender_key=envelope.sender_key),
            )
            return False
        # Responses must answer a request id this channel issued
        if (
            envelope.is_response
            and envelope.request_id
            and not envelope.request_id.startswith(self._self_key)
        ):
            return False
        return True

    async def handle_message(self, event: MessageEvent) -> None:
        """Single dispatch entry point for inbound transport events.

        Never raises: unacceptable messages are dropped, handler failures
        are answered with ``RECEIVER_CALLBACK_ERROR``.
        """
        if self._state is ChannelState.DESTROYED:
            return

        if not self.transport.is_valid_source(event):
            self._log.debug("Message from unexpected source, ignored", extra=self._extra())
            return

        raw = event.data
        if self.config.strict_validation:
            result = validate_message(raw)
            if not result.valid:
                self._reject(raw, result.error or "invalid message")
                return
        elif not isinstance(raw, dict):
            return

        try:
            envelope = Envelope.from_wire(raw)
        except ValidationError as e:
            self._reject(raw, str(e))
            return

        if not self._is_from_peer(envelope):
            return

        self._events.emit(
            ChannelEvent.MESSAGE_RECEIVED,
            {
                "cmdname": envelope.cmdname or "",
                "request_id": envelope.request_id or "",
                "is_response": envelope.is_response,
            },
        )

        request_id = envelope.request_id

        if request_id in self._pending and request_id not in self._queue:
            self._resolve(request_id, envelope)
            return

        if envelope.is_broadcast and request_id is None:
            await self._handle_broadcast(envelope)
            return

        if (
            envelope.cmdname is not None
            and not envelope.is_response
            and envelope.cmdname in self._subscriptions
        ):
            await self._handle_request(envelope)
            return

        if envelope.is_ready:
            self._handle_handshake(envelope)
            return

        if request_id is not None and not envelope.is_response:
            self._log.warning(
                f"No registered handler for: {envelope.cmdname or request_id}",
                extra=self._extra(request_id=request_id, cmdname=envelope.cmdname),
            )
            self._post(Envelope(request_id=request_id, ret=ReturnCode.NO_SUBSCRIBE))

    def _reject(self, raw: Any, reason: str) -> None:
        self._log.warning(f"Invalid message structure: {reason}", extra=self._extra())
        self._events.emit(
            ChannelEvent.VALIDATION_FAILED,
            {"reason": reason, "error": InvalidMessageError(reason), "data": raw},
        )

    def _resolve(self, request_id: str, envelope: Envelope) -> None:
        self._timeouts.remove(request_id)
        pending = self._pending.pop(request_id)
        if not pending.future.done():
            pending.future.set_result(envelope)

    async def _invoke_handler(self, handler: Handler, envelope: Envelope) -> HandlerOutcome:
        """Run a subscription handler and classify what it produced."""
        try:
            result = handler(envelope)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            return Failure(e)

        if result is None:
            return NoReply()
        if isinstance(result, dict):
            return Reply(result)
        return Failure(
            TypeError(
                f"Handler for {envelope.cmdname} must return dict or None, "
                f"got {type(result).__name__}"
            )
        )

    async def _handle_request(self, envelope: Envelope) -> None:
        cmdname = envelope.cmdname
        request_id = envelope.request_id
        outcome = await self._invoke_handler(self._subscriptions[cmdname], envelope)

        if isinstance(outcome, Reply):
            try:
                self._prepare(Envelope(request_id=request_id, ret=ReturnCode.SUCCESS, data=outcome.value))
            except (MessageSizeExceededError, InvalidMessageError) as e:
                outcome = Failure(e)

        if isinstance(outcome, Failure):
            error = outcome.error
            self._log.error(
                f"Handler {cmdname} raised exception: {error}",
                extra=self._extra(request_id=request_id, cmdname=cmdname, error=str(error)),
            )
            self._events.emit(
                ChannelEvent.ERROR,
                {"error": handler_error(cmdname, error), "context": f"handler:{cmdname}"},
            )
            if request_id is not None:
                self._post(
                    Envelope(
                        request_id=request_id,
                        ret=ReturnCode.RECEIVER_CALLBACK_ERROR,
                        msg=str(error) or "unknown error",
                    )
                )
            return

        if request_id is None:
            return
        data = outcome.value if isinstance(outcome, Reply) else None
        self._post(Envelope(request_id=request_id, ret=ReturnCode.SUCCESS, data=data))

    async def _handle_broadcast(self, envelope: Envelope) -> None:
        self._events.emit(
            ChannelEvent.BROADCAST_RECEIVED, {"cmdname": envelope.cmdname, "data": envelope.data}
        )
        handler = self._broadcast_handlers.get(envelope.cmdname)
        if handler is None:
            return
        try:
            result = handler(envelope)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._log.error(
                f"Broadcast handler {envelope.cmdname} raised exception: {e}",
                extra=self._extra(cmdname=envelope.cmdname, error=str(e)),
            )
            self._events.emit(
                ChannelEvent.ERROR, {"error": e, "context": f"broadcast:{envelope.cmdname}"}
            )

    def _handle_handshake(self, envelope: Envelope) -> None:
        if self._state is ChannelState.PAIRED:
            # Already paired: never re-pair, but let our peer re-sync after a reset
            if not envelope.is_response:
                self._post(
                    Envelope(request_id=envelope.request_id, ret=ReturnCode.SUCCESS, msg=READY_MSG)
                )
            return

        if envelope.sender_key:
            self._peer_key = envelope.sender_key
            self._log.info(
                "Point-to-point pairing established", extra=self._extra()
            )
        self._state = ChannelState.PAIRED
        self._ready_event.set()
        self._flush_queue()
        self._events.emit(ChannelEvent.READY, {"peer_key": self._peer_key})

        if not envelope.is_response:
            self._post(
                Envelope(request_id=envelope.request_id, ret=ReturnCode.SUCCESS, msg=READY_MSG)
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait_ready(self, timeout_ms: float | None = None) -> None:
        """Wait until the handshake completes.

        Raises:
            ConnectionTimeoutError: Not paired within ``timeout_ms``
                (defaults to the request timeout).
            ConnectionDestroyedError: The channel was destroyed.
        """
        if self._state is ChannelState.DESTROYED:
            raise connection_destroyed_error()
        if self._state is ChannelState.PAIRED:
            return

        timeout = timeout_ms if timeout_ms is not None else self.config.request_timeout_ms
        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout / 1000)
        except TimeoutError:
            raise ConnectionTimeoutError(
                f"Channel not paired within {timeout}ms", details={"timeout_ms": timeout}
            ) from None

        if self._state is ChannelState.DESTROYED:
            raise connection_destroyed_error()

    def reset_pairing(self) -> None:
        """Forget the peer and send a fresh handshake.

        Publishes issued afterwards queue until a peer answers. Requests
        already in flight keep their deadlines.
        """
        if self._state is ChannelState.DESTROYED:
            raise ConnectionDestroyedError("Cannot reset pairing: channel has been destroyed")

        self._log.info("Resetting pairing", extra=self._extra())
        self._peer_key = ""
        self._state = ChannelState.AWAITING_PEER
        self._ready_event.clear()
        self._post(Envelope(request_id=self._next_request_id(), msg=READY_MSG))

    def destroy(self) -> None:
        """Tear the channel down. Idempotent.

        Every pending future fails with ``ConnectionDestroyedError`` before
        this returns; queued requests, subscriptions and deadlines are gone.
        """
        if self._state is ChannelState.DESTROYED:
            return
        self._state = ChannelState.DESTROYED

        self._events.emit(ChannelEvent.DESTROY, {"reason": "explicit"})

        for request_id, pending in self._pending.items():
            if not pending.future.done():
                pending.future.set_exception(
                    ConnectionDestroyedError(
                        "Channel has been destroyed",
                        details={
                            "request_id": request_id,
                            "cmdname": pending.cmdname,
                            "ret": int(ReturnCode.SEND_CALLBACK_ERROR),
                        },
                    )
                )

        self._subscriptions.clear()
        self._broadcast_handlers.clear()
        self._queue.clear()
        self._pending.clear()
        self._timeouts.destroy()
        self._rate_limiter.reset()
        self._events.destroy()
        # Wake wait_ready() callers so they observe the destroyed state
        self._ready_event.set()
        self._peer_key = ""

        try:
            self.transport.teardown_listener()
        except Exception as e:
            self._log.warning(
                f"Transport listener teardown failed: {e}", extra=self._extra(error=str(e))
            )
