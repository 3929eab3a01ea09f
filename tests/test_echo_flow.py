"""Integration tests for the echo demo application."""

import pytest

from duplexline.apps.echo.handlers import echo, fail, hub_echo, shout
from duplexline.apps.echo.main import main, run_echo
from duplexline.core.envelope import Envelope
from duplexline.hub import ClientMeta, HubRequest


@pytest.mark.asyncio
async def test_echo_handler():
    assert await echo(Envelope(cmdname="echo", data={"text": "hi"})) == {"text": "hi"}
    assert await echo(Envelope(cmdname="echo")) == {"text": ""}


def test_shout_handler():
    assert shout(Envelope(cmdname="shout", data={"text": "hi"})) == {"text": "HI"}


def test_fail_handler():
    with pytest.raises(RuntimeError):
        fail(Envelope(cmdname="fail"))


def test_hub_echo_handler():
    envelope = Envelope(cmdname="echo", data={"text": "hi"})
    request = HubRequest(
        data={"text": "hi"},
        endpoint_id="viewer-1",
        client_meta=ClientMeta(endpoint_id="viewer-1", app_type="viewer"),
        envelope=envelope,
    )

    assert hub_echo(request) == {"text": "hi", "endpointId": "viewer-1", "appType": "viewer"}

    unregistered = HubRequest(data={}, endpoint_id="x", client_meta=None, envelope=envelope)
    assert hub_echo(unregistered)["appType"] is None


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_full_echo_session():
    """Test the complete session: point-to-point calls, hub calls and a typed broadcast."""
    report = await run_echo("hello")

    assert report.echoed == "hello"
    assert report.shouted == "HELLO"
    assert report.errors == ["HANDLER_ERROR", "METHOD_NOT_FOUND"]

    assert len(report.hub_replies) == 3
    assert [r["endpointId"] for r in report.hub_replies] == ["editor-0", "viewer-1", "viewer-2"]
    assert all(r["text"] == "hello" for r in report.hub_replies)
    assert report.hub_replies[0]["appType"] == "editor"

    assert report.broadcasts_sent == 2
    assert sorted(report.broadcasts_received) == ["viewer-1", "viewer-2"]


@pytest.mark.asyncio
@pytest.mark.timeout(10)
async def test_echo_session_with_custom_types():
    report = await run_echo("x", app_types=("viewer",))

    assert report.broadcasts_sent == 1
    assert report.broadcasts_received == ["viewer-0"]


@pytest.mark.timeout(10)
def test_main_prints_report(capsys):
    main(["--text", "ping", "--types", "viewer", "editor"])

    out = capsys.readouterr().out
    assert "echo:  ping" in out
    assert "shout: PING" in out
    assert "Broadcast sent to 1 endpoints" in out
