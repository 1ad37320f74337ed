"""Integration tests exercising the full API with a mock SSH session."""

from __future__ import annotations

import pytest

from switchfleet.errors import AuthError
from tests.mock_ssh import unreachable


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_registered_devices(client):
    resp = await client.get("/registered_devices")
    assert resp.status_code == 200
    assert resp.json() == {"registered_devices": ["sw1", "sw2"]}


@pytest.mark.asyncio
async def test_discovery(client):
    resp = await client.get("/discovery")
    assert resp.status_code == 200
    data = resp.json()
    assert len(data) == 2
    assert data[0]["labels"] == {"path": "/devices/sw1"}
    assert data[1]["labels"] == {"path": "/devices/sw2"}
    assert data[0]["targets"]


@pytest.mark.asyncio
async def test_run_scripts_streams_blocks_and_trailer(client, mock_session):
    mock_session.script("a.sh", stdout=b"ok-a\n")
    mock_session.script("b.sh", stderr=b"b exploded", exit_status=3)

    resp = await client.get("/devices/sw1")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    body = resp.text
    assert "ok-a" in body
    assert "Failed to run script_file /tmp/b." in body
    assert "b exploded" in body
    assert body.endswith("\n#EOF\n")
    assert len([c for c in mock_session.commands if c.startswith("sudo bash")]) == 2
    assert len(mock_session.removed) == 2
    assert mock_session.remote_files == {}
    assert mock_session.closed


@pytest.mark.asyncio
async def test_run_scripts_ordered(client, mock_session):
    mock_session.script("a.sh", stdout=b"AAA", delay=0.1)
    mock_session.script("b.sh", stdout=b"BBB")

    resp = await client.get("/devices/sw1", params={"ordered": "true"})

    assert resp.status_code == 200
    assert resp.text.index("AAA") < resp.text.index("BBB")


@pytest.mark.asyncio
async def test_unknown_device_is_404(client, mock_manager):
    resp = await client.get("/devices/nope")
    assert resp.status_code == 404
    assert mock_manager.opened == []


@pytest.mark.asyncio
async def test_dial_failure_is_502(client, mock_manager, mock_session):
    mock_manager.fail_with(unreachable())
    resp = await client.get("/devices/sw1")
    assert resp.status_code == 502
    assert mock_session.commands == []


@pytest.mark.asyncio
async def test_auth_failure_is_502(client, mock_manager):
    mock_manager.fail_with(AuthError("10.0.0.1", "admin"))
    resp = await client.get("/details/sw1")
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_missing_script_list_is_500(client, mock_manager, test_settings):
    import os

    os.remove(test_settings.switchfleet_script_list_file)
    resp = await client.get("/devices/sw1")
    assert resp.status_code == 500
    assert mock_manager.opened == []


@pytest.mark.asyncio
async def test_details(client, mock_session):
    resp = await client.get("/details/sw1")
    assert resp.status_code == 200
    data = resp.json()
    assert data["containers"] == ["snmp", "pmon", "syncd", "swss", "bgp"]
    assert data["os_version"] == "SONiC.202305.1-ab12cd34"
    assert data["memory_types"] == ["free", "used", "shared", "cache"]
    assert data["active_interfaces"] == "32"
    assert mock_session.closed


@pytest.mark.asyncio
async def test_details_unknown_device(client):
    resp = await client.get("/details/sw9")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_api_key_enforced(client, monkeypatch):
    from switchfleet.config import settings

    monkeypatch.setattr(settings, "switchfleet_api_key", "k3y")
    assert (await client.get("/registered_devices")).status_code == 401
    resp = await client.get("/registered_devices", headers={"X-API-Key": "k3y"})
    assert resp.status_code == 200
    assert (await client.get("/health")).status_code == 200
