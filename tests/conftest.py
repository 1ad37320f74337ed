"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("SWITCHFLEET_API_KEY", "")
os.environ.setdefault("SWITCHFLEET_HOST_KEY_POLICY", "known_hosts")
os.environ.setdefault("SWITCHFLEET_LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient

from switchfleet.config import Settings
from tests.mock_ssh import MockSession, MockSessionManager


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        switchfleet_device_list_file=str(tmp_path / "devices.csv"),
        switchfleet_script_list_file=str(tmp_path / "scripts.txt"),
        switchfleet_max_concurrency=4,
        switchfleet_transfer_timeout_seconds=5.0,
        switchfleet_command_timeout_seconds=5.0,
        switchfleet_cleanup_timeout_seconds=5.0,
        switchfleet_batch_timeout_seconds=0,
        switchfleet_secrets_dir=str(tmp_path),
    )


@pytest.fixture
def mock_session():
    """Provide a fresh MockSession."""
    return MockSession()


@pytest.fixture
def mock_manager(mock_session):
    return MockSessionManager(mock_session)


@pytest.fixture
def write_scripts(tmp_path):
    """Create local script files and return their paths in order."""

    def _write(**scripts: str) -> list[str]:
        folder = tmp_path / "scripts"
        folder.mkdir(exist_ok=True)
        paths = []
        for name, body in scripts.items():
            path = folder / name.replace("_", ".")
            path.write_text(body)
            paths.append(str(path))
        return paths

    return _write


@pytest.fixture
def registry_file(tmp_path):
    path = tmp_path / "devices.csv"
    path.write_text(
        "device_name,ip_address,username,password\n"
        "sw1,10.0.0.1,admin,literal:admin\n"
        "sw2,10.0.0.2:2222,admin,env:SW2_PASSWORD\n",
    )
    return path


@pytest.fixture
async def client(mock_manager, test_settings, registry_file, write_scripts, monkeypatch):
    """Async test client with the mock session manager injected."""
    monkeypatch.setenv("SWITCHFLEET_API_KEY", "")

    paths = write_scripts(a_sh="echo ok-a\n", b_sh="exit 3\n")
    script_list = test_settings.switchfleet_script_list_file
    with open(script_list, "w") as fh:
        fh.write("\n".join(paths) + "\n")

    from switchfleet.services.dispatcher import Dispatcher
    from switchfleet.services.registry import DeviceRegistry
    from switchfleet.services.scripts import ScriptCatalog

    import switchfleet.routers.devices as rd

    monkeypatch.setattr(rd, "device_registry", DeviceRegistry(test_settings))
    monkeypatch.setattr(rd, "script_catalog", ScriptCatalog(test_settings))
    monkeypatch.setattr(rd, "session_manager", mock_manager)
    monkeypatch.setattr(rd, "dispatcher", Dispatcher(test_settings))

    from switchfleet.main import app as fastapi_app

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
