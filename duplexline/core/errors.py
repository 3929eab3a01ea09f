"""Error taxonomy for duplexline.

Every failure surfaced to application code is a ``ChannelError`` carrying an
``ErrorCode`` and a ``details`` dict. Catch ``ChannelError`` for all of them,
or a concrete subclass for one kind.
"""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Machine-readable error codes."""

    CONNECTION_DESTROYED = "CONNECTION_DESTROYED"
    CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
    METHOD_CALL_TIMEOUT = "METHOD_CALL_TIMEOUT"
    METHOD_NOT_FOUND = "METHOD_NOT_FOUND"
    TRANSMISSION_FAILED = "TRANSMISSION_FAILED"
    MESSAGE_SIZE_EXCEEDED = "MESSAGE_SIZE_EXCEEDED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    HANDLER_ERROR = "HANDLER_ERROR"
    INVALID_MESSAGE = "INVALID_MESSAGE"
    ORIGIN_MISMATCH = "ORIGIN_MISMATCH"


class ChannelError(Exception):
    """Base exception for channel and hub failures.

    Attributes:
        code: The ErrorCode for programmatic handling.
        details: Extra context, e.g. ``{"cmdname": ..., "request_id": ...}``.
    """

    code: ErrorCode = ErrorCode.TRANSMISSION_FAILED

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.code.value}] {base}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "details": self.details,
        }

    @classmethod
    def from_code(
        cls, code: ErrorCode, message: str, details: dict[str, Any] | None = None
    ) -> "ChannelError":
        """Build the concrete subclass registered for ``code``."""
        error_cls = _ERRORS_BY_CODE.get(code, ChannelError)
        return error_cls(message, code, details)


class ConnectionDestroyedError(ChannelError):
    code = ErrorCode.CONNECTION_DESTROYED


class ConnectionTimeoutError(ChannelError):
    code = ErrorCode.CONNECTION_TIMEOUT


class MethodCallTimeoutError(ChannelError):
    code = ErrorCode.METHOD_CALL_TIMEOUT


class MethodNotFoundError(ChannelError):
    code = ErrorCode.METHOD_NOT_FOUND


class TransmissionFailedError(ChannelError):
    code = ErrorCode.TRANSMISSION_FAILED


class MessageSizeExceededError(ChannelError):
    code = ErrorCode.MESSAGE_SIZE_EXCEEDED


class RateLimitExceededError(ChannelError):
    code = ErrorCode.RATE_LIMIT_EXCEEDED


class HandlerError(ChannelError):
    code = ErrorCode.HANDLER_ERROR


class InvalidMessageError(ChannelError):
    code = ErrorCode.INVALID_MESSAGE


class OriginMismatchError(ChannelError):
    code = ErrorCode.ORIGIN_MISMATCH


_ERRORS_BY_CODE: dict[ErrorCode, type[ChannelError]] = {
    cls.code: cls
    for cls in (
        ConnectionDestroyedError,
        ConnectionTimeoutError,
        MethodCallTimeoutError,
        MethodNotFoundError,
        TransmissionFailedError,
        MessageSizeExceededError,
        RateLimitExceededError,
        HandlerError,
        InvalidMessageError,
        OriginMismatchError,
    )
}


def connection_destroyed_error(request_id: str | None = None) -> ConnectionDestroyedError:
    return ConnectionDestroyedError(
        "Channel has been destroyed",
        details={"request_id": request_id} if request_id else None,
    )


def timeout_error(cmdname: str, timeout_ms: float) -> MethodCallTimeoutError:
    return MethodCallTimeoutError(
        f'Request "{cmdname}" timed out after {timeout_ms}ms',
        details={"cmdname": cmdname, "timeout_ms": timeout_ms},
    )


def handler_error(cmdname: str, original: BaseException | str) -> HandlerError:
    text = str(original)
    return HandlerError(
        text or f'Handler for "{cmdname}" raised an error',
        details={"cmdname": cmdname, "original_error": text},
    )
