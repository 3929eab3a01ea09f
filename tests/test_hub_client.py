"""Tests for endpoint-side hub registration."""

import asyncio

import pytest

from duplexline.adapters.inmemory import InMemoryHost
from duplexline.core.channel import Channel
from duplexline.core.config import ChannelConfig, HubConfig
from duplexline.core.emitter import ChannelEvent
from duplexline.core.errors import ConnectionTimeoutError
from duplexline.hub import Hub
from duplexline.hub_client import HubClient
from tests.conftest import settle


@pytest.fixture
def host():
    return InMemoryHost()


@pytest.fixture
async def hub(host):
    hub = Hub(host, HubConfig(version="1.2.3", cleanup_interval_ms=0))
    hub.start()
    yield hub
    hub.shutdown()


class TestHubClient:
    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_register_sends_declared_identity(self, host, hub):
        channel = Channel(host.connect("tab"))
        client = HubClient(channel, app_type="editor", app_name="Main editor")

        assert not client.is_registered
        assert client.registration is None

        reply = await client.register()

        assert client.is_registered
        assert client.registration == reply
        meta = hub.get_client_meta("tab")
        assert (meta.app_type, meta.app_name) == ("editor", "Main editor")

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_register_without_identity(self, host, hub):
        client = HubClient(Channel(host.connect("tab")))

        await client.register()

        meta = hub.get_client_meta("tab")
        assert meta.app_type is None
        assert meta.app_name is None

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_concurrent_registers_share_one_round_trip(self, host):
        connected = []
        hub = Hub(
            host,
            HubConfig(cleanup_interval_ms=0),
            on_client_connect=lambda endpoint_id, meta: connected.append(endpoint_id),
        )
        hub.start()
        client = HubClient(Channel(host.connect("tab")), app_type="viewer")

        try:
            first, second = await asyncio.gather(client.register(), client.register())
        finally:
            hub.shutdown()

        assert first == second
        assert connected == ["tab"]

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_register_times_out_without_hub(self, host):
        channel = Channel(host.connect("tab"), ChannelConfig(request_timeout_ms=50))
        client = HubClient(channel)

        with pytest.raises(ConnectionTimeoutError):
            await client.register()
        assert not client.is_registered

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_activation_without_auto_reconnect(self, host, hub):
        channel = Channel(host.connect("tab"))
        client = HubClient(channel, auto_reconnect=False)
        await client.register()
        paired_with = channel.peer_key
        activated = []
        channel.on(ChannelEvent.HUB_ACTIVATED, activated.append)

        await hub.notify_activated()
        await host.drain()
        await settle()

        assert activated == [{"version": "1.2.3"}]
        assert client.is_registered
        assert channel.peer_key == paired_with

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_activation_after_destroy_is_ignored(self, host, hub):
        channel = Channel(host.connect("tab"))
        client = HubClient(channel)
        await client.register()

        channel.destroy()
        await hub.notify_activated()
        await host.drain()

        assert client.is_registered
