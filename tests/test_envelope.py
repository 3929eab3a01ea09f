"""Tests for the wire envelope, the error taxonomy and configuration models."""

import pytest
from pydantic import ValidationError

from duplexline.core.config import ChannelConfig, HubConfig
from duplexline.core.envelope import Envelope, ReturnCode
from duplexline.core.errors import (
    ChannelError,
    ConnectionDestroyedError,
    ErrorCode,
    HandlerError,
    MethodCallTimeoutError,
    OriginMismatchError,
    handler_error,
    timeout_error,
)

# =============================================================================
# Envelope
# =============================================================================


class TestEnvelope:
    def test_wire_keys_are_camel_case_and_unset_fields_omitted(self):
        envelope = Envelope(request_id="k1", cmdname="add", data={"a": 1}, sender_key="k")

        assert envelope.to_wire() == {
            "requestId": "k1",
            "cmdname": "add",
            "data": {"a": 1},
            "senderKey": "k",
        }

    def test_return_code_serializes_as_int(self):
        wire = Envelope(request_id="k1", ret=ReturnCode.TIMEOUT).to_wire()
        assert wire["ret"] == -99
        assert type(wire["ret"]) is int

    def test_from_wire_ignores_unknown_fields(self):
        envelope = Envelope.from_wire({"requestId": "k1", "ret": -3, "_trace": {"x": 1}})

        assert envelope.request_id == "k1"
        assert envelope.ret is ReturnCode.NO_SUBSCRIBE
        assert envelope.is_response
        assert not envelope.ok

    def test_false_broadcast_is_dropped(self):
        assert "broadcast" not in Envelope(cmdname="tick", broadcast=False).to_wire()
        assert Envelope(cmdname="tick", broadcast=True).is_broadcast

    def test_classifiers(self):
        assert Envelope(msg="ready").is_ready
        assert not Envelope(request_id="x").is_response
        assert Envelope(request_id="x", ret=0).ok

    def test_envelope_is_frozen(self):
        envelope = Envelope(cmdname="a")
        with pytest.raises(ValidationError):
            envelope.cmdname = "b"

    def test_data_must_be_a_dict(self):
        with pytest.raises(ValidationError):
            Envelope(cmdname="a", data=[1, 2])


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    def test_str_includes_code(self):
        error = ConnectionDestroyedError("gone")
        assert str(error) == "[CONNECTION_DESTROYED] gone"
        assert error.code is ErrorCode.CONNECTION_DESTROYED

    def test_to_dict(self):
        error = OriginMismatchError("bad origin", details={"origin": "x"})
        assert error.to_dict() == {
            "name": "OriginMismatchError",
            "message": "bad origin",
            "code": "ORIGIN_MISMATCH",
            "details": {"origin": "x"},
        }

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_from_code_builds_matching_subclass(self, code):
        error = ChannelError.from_code(code, "message")
        assert isinstance(error, ChannelError)
        assert error.code is code
        assert type(error) is not ChannelError

    def test_helpers(self):
        timeout = timeout_error("add", 250)
        assert isinstance(timeout, MethodCallTimeoutError)
        assert timeout.details == {"cmdname": "add", "timeout_ms": 250}

        failed = handler_error("add", ValueError("negative"))
        assert isinstance(failed, HandlerError)
        assert failed.message == "negative"
        assert handler_error("add", "").message == 'Handler for "add" raised an error'


# =============================================================================
# Configuration
# =============================================================================


class TestConfig:
    def test_defaults(self):
        config = ChannelConfig()
        assert config.request_timeout_ms == 5000
        assert config.max_message_size_bytes == 1024 * 1024
        assert config.rate_limit_per_second == 100
        assert config.strict_validation is True

        hub = HubConfig()
        assert hub.cleanup_interval_ms == 30_000
        assert hub.channel.key_prefix == "hub_"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"request_timeout_ms": 0},
            {"max_message_size_bytes": -1},
            {"rate_limit_per_second": -5},
            {"unknown_option": True},
        ],
    )
    def test_invalid_channel_config_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            ChannelConfig(**kwargs)

    def test_invalid_hub_config_rejected(self):
        with pytest.raises(ValidationError):
            HubConfig(cleanup_interval_ms=-1)

    def test_config_is_frozen(self):
        with pytest.raises(ValidationError):
            ChannelConfig().request_timeout_ms = 10
