"""Configuration models for channels and hubs."""

from pydantic import BaseModel, Field, field_validator

DEFAULT_REQUEST_TIMEOUT_MS = 5000
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024
DEFAULT_RATE_LIMIT = 100
DEFAULT_CLEANUP_INTERVAL_MS = 30_000


class ChannelConfig(BaseModel):
    """Channel settings.

    Attributes:
        request_timeout_ms: Default deadline for ``publish`` (per-call override allowed).
        max_message_size_bytes: Largest outbound envelope, JSON-encoded. 0 disables.
        rate_limit_per_second: Outbound messages per second. 0 disables.
        strict_validation: Structurally validate inbound envelopes.
        key_prefix: Prefix of the generated ``self_key``.
    """

    request_timeout_ms: float = DEFAULT_REQUEST_TIMEOUT_MS
    max_message_size_bytes: int = DEFAULT_MAX_MESSAGE_SIZE
    rate_limit_per_second: int = DEFAULT_RATE_LIMIT
    strict_validation: bool = True
    key_prefix: str = "ch_"

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    @field_validator("request_timeout_ms")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"request_timeout_ms must be positive, got {v}")
        return v

    @field_validator("max_message_size_bytes", "rate_limit_per_second")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be >= 0 (0 disables), got {v}")
        return v


class HubConfig(BaseModel):
    """Hub settings.

    Attributes:
        cleanup_interval_ms: Period of the inactive-endpoint sweep. 0 disables.
        version: Announced to endpoints in the activation broadcast.
        channel: Settings for channels the hub creates.
    """

    cleanup_interval_ms: float = DEFAULT_CLEANUP_INTERVAL_MS
    version: str | None = None
    channel: ChannelConfig = Field(default_factory=lambda: ChannelConfig(key_prefix="hub_"))

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    @field_validator("cleanup_interval_ms")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"cleanup_interval_ms must be >= 0 (0 disables), got {v}")
        return v
