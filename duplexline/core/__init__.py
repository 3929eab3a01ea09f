"""Core components for the duplexline RPC engine.

This module exposes the primary types, constants, and utilities:

Types:
    Channel: Duplex request/response channel over a one-way transport.
    Envelope: Validated wire message with requestId, cmdname, data, ret.
    ReturnCode: Closed set of response codes (SUCCESS, TIMEOUT, ...).
    NoReply / Reply / Failure: Classified subscription-handler outcomes.

Building blocks:
    TimeoutScheduler: Many deadlines multiplexed onto one timer.
    SlidingWindowRateLimiter: Outbound rate limit over a circular buffer.
    EventEmitter / ChannelEvent: Lifecycle observability events.

Configuration:
    ChannelConfig, HubConfig: Frozen pydantic settings models.

Errors:
    ChannelError and one subclass per ErrorCode.
"""

from duplexline.core.channel import (
    Channel,
    ChannelState,
    Failure,
    NoReply,
    Reply,
    generate_unique_id,
)
from duplexline.core.config import ChannelConfig, HubConfig
from duplexline.core.emitter import ChannelEvent, EventEmitter
from duplexline.core.envelope import READY_MSG, Envelope, ReturnCode
from duplexline.core.errors import (
    ChannelError,
    ConnectionDestroyedError,
    ConnectionTimeoutError,
    ErrorCode,
    HandlerError,
    InvalidMessageError,
    MessageSizeExceededError,
    MethodCallTimeoutError,
    MethodNotFoundError,
    OriginMismatchError,
    RateLimitExceededError,
    TransmissionFailedError,
)
from duplexline.core.ratelimit import SlidingWindowRateLimiter
from duplexline.core.timeouts import TimeoutScheduler

__all__ = [
    "Channel",
    "ChannelState",
    "NoReply",
    "Reply",
    "Failure",
    "generate_unique_id",
    "ChannelConfig",
    "HubConfig",
    "ChannelEvent",
    "EventEmitter",
    "Envelope",
    "ReturnCode",
    "READY_MSG",
    "SlidingWindowRateLimiter",
    "TimeoutScheduler",
    "ChannelError",
    "ErrorCode",
    "ConnectionDestroyedError",
    "ConnectionTimeoutError",
    "MethodCallTimeoutError",
    "MethodNotFoundError",
    "TransmissionFailedError",
    "MessageSizeExceededError",
    "RateLimitExceededError",
    "HandlerError",
    "InvalidMessageError",
    "OriginMismatchError",
]
