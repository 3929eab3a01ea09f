"""Structural validation of inbound wire envelopes.

All functions are pure and operate on the raw wire dict (camelCase keys)
before it is turned into an ``Envelope``.
"""

import json
import math
from dataclasses import dataclass
from typing import Any

from duplexline.core.envelope import READY_MSG, ReturnCode

_RETURN_CODES = frozenset(code.value for code in ReturnCode)
_IDENTIFYING_FIELDS = ("requestId", "cmdname", "msg")
_STRING_FIELDS = ("requestId", "cmdname", "msg")
_SAFE_LOG_FIELDS = ("requestId", "cmdname", "ret", "msg", "time", "senderKey", "broadcast")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one raw envelope."""

    valid: bool
    error: str | None = None
    message: dict[str, Any] | None = None


def _invalid(error: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_return_code(value: Any) -> bool:
    return _is_number(value) and value in _RETURN_CODES


def validate_message(raw: Any) -> ValidationResult:
    """Check that ``raw`` is a structurally sound envelope.

    The envelope must be a dict holding at least one of ``requestId``,
    ``cmdname`` or ``msg``; any present field must have its declared type.
    """
    if not isinstance(raw, dict):
        return _invalid("Message must be an object")

    if not any(field in raw for field in _IDENTIFYING_FIELDS):
        return _invalid("Message must have requestId, cmdname, or msg field")

    for field in _STRING_FIELDS:
        if field in raw and not isinstance(raw[field], str):
            return _invalid(f"{field} must be a string")

    if "ret" in raw and not is_valid_return_code(raw["ret"]):
        return _invalid("ret must be a valid ReturnCode")

    if raw.get("data") is not None and not isinstance(raw["data"], dict):
        return _invalid("data must be an object")

    if raw.get("senderKey") is not None and not isinstance(raw["senderKey"], str):
        return _invalid("senderKey must be a string")

    if raw.get("time") is not None:
        t = raw["time"]
        if not _is_number(t) or not math.isfinite(t):
            return _invalid("time must be a finite number")

    return ValidationResult(valid=True, message=raw)


def validate_request(raw: Any) -> ValidationResult:
    """Validate an envelope that must be a request."""
    result = validate_message(raw)
    if not result.valid:
        return result

    if not isinstance(raw.get("requestId"), str) or not raw["requestId"]:
        return _invalid("Request must have a non-empty requestId")
    if not isinstance(raw.get("cmdname"), str) or not raw["cmdname"]:
        return _invalid("Request must have a non-empty cmdname")
    return result


def validate_response(raw: Any) -> ValidationResult:
    """Validate an envelope that must be a response."""
    result = validate_message(raw)
    if not result.valid:
        return result

    if "ret" not in raw:
        return _invalid("Response must have a ret field")
    return result


def is_response_message(raw: dict[str, Any]) -> bool:
    return _is_number(raw.get("ret"))


def is_ready_message(raw: dict[str, Any]) -> bool:
    return raw.get("msg") == READY_MSG


def is_broadcast_message(raw: dict[str, Any]) -> bool:
    return raw.get("broadcast") is True and "cmdname" in raw


def estimate_message_size(obj: Any) -> float:
    """UTF-8 byte length of the JSON encoding of ``obj``.

    Returns ``math.inf`` for objects that cannot be serialized, so they always
    exceed any configured limit.
    """
    try:
        serialized = json.dumps(obj, ensure_ascii=False)
    except (TypeError, ValueError):
        return math.inf
    return len(serialized.encode("utf-8"))


def sanitize_for_logging(raw: dict[str, Any]) -> dict[str, Any]:
    """Copy of the known envelope fields, safe to attach to a log record."""
    safe = {field: raw[field] for field in _SAFE_LOG_FIELDS if field in raw}
    if raw.get("data") is not None:
        try:
            safe["data"] = json.loads(json.dumps(raw["data"]))
        except (TypeError, ValueError):
            safe["data"] = "[Unserializable data]"
    return safe
