"""Wire envelope model for duplexline."""

import time
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Handshake marker carried in ``msg``
READY_MSG = "ready"


class ReturnCode(IntEnum):
    """Closed set of in-band outcome codes carried in ``ret``."""

    SUCCESS = 0
    RECEIVER_CALLBACK_ERROR = -1
    SEND_CALLBACK_ERROR = -2
    NO_SUBSCRIBE = -3
    TIMEOUT = -99


def now_ms() -> int:
    """Epoch milliseconds, the unit of ``Envelope.time``."""
    return int(time.time() * 1000)


class Envelope(BaseModel):
    """Immutable view of one wire message.

    On the wire an envelope is a plain dict with camelCase keys
    (``requestId``, ``senderKey``); in Python the fields are snake_case.
    Every field is optional: a request carries ``request_id`` and ``cmdname``,
    a response carries ``request_id`` and ``ret``, a handshake carries
    ``msg="ready"`` and a broadcast carries ``cmdname`` and ``broadcast=True``.

    Attributes:
        request_id: Correlation id, ``sender self_key + counter``.
        cmdname: Command or broadcast event name.
        data: JSON-compatible payload dictionary.
        ret: Return code, present on responses only.
        msg: Free text (handshake marker or error description).
        time: Epoch milliseconds stamped at send.
        sender_key: ``self_key`` of the sending channel, stamped at send.
        broadcast: True for one-way broadcast messages.
    """

    request_id: str | None = Field(default=None, alias="requestId")
    cmdname: str | None = None
    data: dict[str, Any] | None = None
    ret: ReturnCode | None = None
    msg: str | None = None
    time: int | float | None = None
    sender_key: str | None = Field(default=None, alias="senderKey")
    broadcast: bool | None = None

    model_config = {
        "extra": "ignore",
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("broadcast")
    @classmethod
    def validate_broadcast(cls, v: bool | None) -> bool | None:
        """Only ``True`` is meaningful; ``False`` is dropped from the wire."""
        return True if v else None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> "Envelope":
        return cls.model_validate(raw)

    def to_wire(self) -> dict[str, Any]:
        """Plain dict with camelCase keys and unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @property
    def ok(self) -> bool:
        return self.ret == ReturnCode.SUCCESS

    @property
    def is_response(self) -> bool:
        return self.ret is not None

    @property
    def is_ready(self) -> bool:
        return self.msg == READY_MSG

    @property
    def is_broadcast(self) -> bool:
        return bool(self.broadcast) and self.cmdname is not None
