"""Echo demo application entrypoint.

Shows both halves of duplexline over the in-memory adapters:

    client Channel ⇄ server Channel        point-to-point calls
    HubClient × N  ⇄ Hub ⇄ InMemoryHost   registration, hub calls, broadcast

Usage:
    python -m duplexline.apps.echo.main
"""

import argparse
import asyncio
from dataclasses import dataclass, field
from typing import Any

from duplexline.adapters.inmemory import InMemoryHost, InMemoryTransport
from duplexline.apps.echo.handlers import echo, fail, hub_echo, shout
from duplexline.core.channel import Channel
from duplexline.core.config import ChannelConfig, HubConfig
from duplexline.core.envelope import Envelope
from duplexline.core.errors import HandlerError, MethodNotFoundError
from duplexline.hub import Hub
from duplexline.hub_client import HubClient


@dataclass
class EchoReport:
    echoed: str = ""
    shouted: str = ""
    errors: list[str] = field(default_factory=list)
    hub_replies: list[dict[str, Any]] = field(default_factory=list)
    broadcasts_sent: int = 0
    broadcasts_received: list[str] = field(default_factory=list)


async def run_echo(
    text: str = "hello",
    app_types: tuple[str, ...] = ("editor", "viewer", "viewer"),
) -> EchoReport:
    """Run a complete echo session and report what came back."""
    report = EchoReport()

    left, right = InMemoryTransport.pair()
    server = Channel(right, subscriptions={"echo": echo, "shout": shout, "fail": fail})
    client = Channel(left)

    report.echoed = (await client.call("echo", {"text": text}))["text"]
    report.shouted = (await client.call("shout", {"text": text}))["text"]
    for method in ("fail", "missing"):
        try:
            await client.call(method)
        except (HandlerError, MethodNotFoundError) as e:
            report.errors.append(e.code.value)

    client.destroy()
    server.destroy()

    host = InMemoryHost()
    hub = Hub(host, HubConfig(version="1.0.0", cleanup_interval_ms=0))
    hub.subscribe_global("echo", hub_echo)
    hub.start()

    endpoints: list[Channel] = []
    for i, app_type in enumerate(app_types):
        channel = Channel(host.connect(f"{app_type}-{i}"), ChannelConfig(key_prefix=f"{app_type}_"))

        def on_announce(envelope: Envelope, name: str = f"{app_type}-{i}") -> None:
            report.broadcasts_received.append(name)

        channel.on_broadcast("announce", on_announce)
        await HubClient(channel, app_type=app_type, app_name=f"{app_type} #{i}").register()
        report.hub_replies.append(await channel.call("echo", {"text": text}))
        endpoints.append(channel)

    report.broadcasts_sent = await hub.broadcast_to_type("viewer", "announce", {"text": text})
    await host.drain()

    for channel in endpoints:
        channel.destroy()
    hub.shutdown()
    return report


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the echo demo."""
    parser = argparse.ArgumentParser(description="duplexline echo demo")
    parser.add_argument("--text", "-t", type=str, default="hello", help="Text to echo")
    parser.add_argument(
        "--types",
        nargs="+",
        default=["editor", "viewer", "viewer"],
        help="App types of the hub endpoints",
    )
    args = parser.parse_args(argv)

    print("Starting echo demo...\n")
    report = asyncio.run(run_echo(args.text, tuple(args.types)))
    print(f"echo:  {report.echoed}")
    print(f"shout: {report.shouted}")
    print(f"errors: {', '.join(report.errors)}")
    for reply in report.hub_replies:
        print(f"hub echo from {reply['endpointId']} ({reply['appType']}): {reply['text']}")
    print(f"\nBroadcast sent to {report.broadcasts_sent} endpoints: {report.broadcasts_received}")


if __name__ == "__main__":
    main()
