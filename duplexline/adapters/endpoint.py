"""Hub-side transport for one endpoint of a ``HubHost``."""

from typing import Any

from duplexline.adapters.base import Dispatch, HubHost, MessageEvent


class EndpointTransport:
    """Sends to one endpoint through the host and accepts only its events.

    The Hub owns the single host listener and routes events to channels
    itself, so installing a per-channel listener is a no-op.
    """

    def __init__(self, host: HubHost, endpoint_id: str) -> None:
        self.host = host
        self.endpoint_id = endpoint_id

    def setup_listener(self, dispatch: Dispatch) -> None:
        pass

    def teardown_listener(self) -> None:
        pass

    def send_raw(self, envelope: dict[str, Any], hints: dict[str, Any] | None = None) -> None:
        self.host.post_message(self.endpoint_id, envelope)

    def is_valid_source(self, event: MessageEvent) -> bool:
        return event.source == self.endpoint_id
