"""Command handlers for the echo demo."""

import asyncio
from typing import Any

from duplexline.core.envelope import Envelope
from duplexline.hub import HubRequest


async def echo(envelope: Envelope) -> dict[str, Any]:
    """Reply with the received text."""
    await asyncio.sleep(0)
    return {"text": (envelope.data or {}).get("text", "")}


def shout(envelope: Envelope) -> dict[str, Any]:
    return {"text": str((envelope.data or {}).get("text", "")).upper()}


def fail(envelope: Envelope) -> None:
    raise RuntimeError("the echo server refuses")


def hub_echo(request: HubRequest) -> dict[str, Any]:
    """Echo through the hub, tagged with who asked."""
    app_type = request.client_meta.app_type if request.client_meta else None
    return {
        "text": request.data.get("text", ""),
        "endpointId": request.endpoint_id,
        "appType": app_type,
    }
