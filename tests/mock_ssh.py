"""Mock SSH session for testing without a real switch.

Keeps an in-memory remote filesystem so uploads, privileged runs and
removals can be asserted on, and lets each script be given canned output,
an exit status, a delay or an upload failure.
"""

from __future__ import annotations

import asyncio
import posixpath
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from switchfleet.errors import DialError, OperationTimeout, TransferError
from switchfleet.models.devices import DeviceRecord
from switchfleet.models.tasks import CommandResult

# ── Canned SONiC outputs ──────────────────────────────────────────────────

TEMPERATURE_KEYS = """\
ASIC
CPU Core 0
PSU 1 Temp 1
"""

DOCKER_PS = """\
snmp
pmon
syncd
swss
bgp
"""

OS_VERSION = " SONiC.202305.1-ab12cd34\n"
ASIC_TYPE = " broadcom\n"
KERNEL_VERSION = " 5.10.0-18-2-amd64\n"
SAI_VERSION = "libsaibcm 8.4.0.2\n"
ACTIVE_INTERFACES = "32\n"

_CANNED: dict[str, str] = {
    "redis-cli -n 6": TEMPERATURE_KEYS,
    "docker ps -a": DOCKER_PS,
    "show version | grep 'SONiC Software Version'": OS_VERSION,
    "show version | grep 'ASIC:'": ASIC_TYPE,
    "show version | grep 'Kernel'": KERNEL_VERSION,
    "docker exec syncd": SAI_VERSION,
    "show interfaces status": ACTIVE_INTERFACES,
}

PRIVILEGED = "sudo bash "
REMOVE = "sudo rm -f "


@dataclass
class ScriptBehaviour:
    stdout: bytes = b""
    stderr: bytes = b""
    exit_status: int = 0
    delay: float = 0.0
    upload_error: Optional[str] = None
    remote_created: bool = False


def make_device(name: str = "sw1") -> DeviceRecord:
    return DeviceRecord(name=name, address="127.0.0.1", username="admin", secret="literal:admin")


# ── Mock session ─────────────────────────────────────────────────────────


class MockSession:
    """Drop-in replacement for SessionHandle."""

    def __init__(self, device: DeviceRecord | None = None) -> None:
        self.device = device or make_device()
        self.remote_files: dict[str, bytes] = {}
        self.uploads: list[tuple[str, str]] = []
        self.commands: list[str] = []
        self.removed: list[str] = []
        self.executed: dict[str, bytes] = {}
        self.finished: list[str] = []
        self.behaviour: dict[str, ScriptBehaviour] = {}
        self.cleanup_error: Optional[str] = None
        self._extra: dict[str, CommandResult] = {}
        self._names: dict[str, str] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def script(self, name: str, **kwargs) -> ScriptBehaviour:
        """Configure the behaviour of the script whose base name is *name*."""
        self.behaviour[name] = ScriptBehaviour(**kwargs)
        return self.behaviour[name]

    def add_response(
        self, prefix: str, stdout: str = "", *, stderr: str = "", exit_status: int = 0,
        error: Optional[str] = None,
    ) -> None:
        self._extra[prefix] = CommandResult(
            command=prefix,
            stdout=stdout.encode(),
            stderr=stderr.encode(),
            exit_status=None if error else exit_status,
            error=error,
        )

    async def upload(self, local_path: str, remote_path: str, *, timeout: Optional[float] = None) -> int:
        name = posixpath.basename(local_path)
        self.uploads.append((local_path, remote_path))
        self._names[remote_path] = name
        b = self.behaviour.get(name, ScriptBehaviour())
        if b.upload_error:
            if b.remote_created:
                self.remote_files[remote_path] = b""
            raise TransferError(remote_path, b.upload_error, remote_created=b.remote_created)
        try:
            data = Path(local_path).read_bytes()
        except OSError as exc:
            raise TransferError(remote_path, str(exc), remote_created=False) from exc
        self.remote_files[remote_path] = data
        return len(data)

    async def _run_script(self, command: str, path: str, timeout: Optional[float]) -> CommandResult:
        name = self._names.get(path, posixpath.basename(path))
        b = self.behaviour.get(name, ScriptBehaviour())
        self.executed[path] = self.remote_files.get(path, b"")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if b.delay:
                try:
                    await asyncio.wait_for(asyncio.sleep(b.delay), timeout)
                except asyncio.TimeoutError:
                    raise OperationTimeout(f"command {command!r}", timeout or 0.0) from None
        finally:
            self.in_flight -= 1
        self.finished.append(name)
        return CommandResult(
            command=command, stdout=b.stdout, stderr=b.stderr, exit_status=b.exit_status,
        )

    async def run_command(self, command: str, *, timeout: Optional[float] = None) -> CommandResult:
        self.commands.append(command)
        if command.startswith(REMOVE):
            path = shlex.split(command)[-1]
            self.removed.append(path)
            if self.cleanup_error:
                return CommandResult(command=command, stderr=self.cleanup_error.encode(), exit_status=1)
            self.remote_files.pop(path, None)
            return CommandResult(command=command, exit_status=0)
        if command.startswith(PRIVILEGED):
            return await self._run_script(command, shlex.split(command)[-1], timeout)
        for prefix, result in self._extra.items():
            if command.startswith(prefix):
                return result.model_copy(update={"command": command})
        for prefix, output in _CANNED.items():
            if command.startswith(prefix):
                return CommandResult(command=command, stdout=output.encode(), exit_status=0)
        return CommandResult(command=command, exit_status=0)

    async def close(self) -> None:
        self.close_calls += 1

    async def __aenter__(self) -> "MockSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class MockSessionManager:
    """Drop-in replacement for SessionManager."""

    def __init__(self, session: MockSession | None = None) -> None:
        self.session = session or MockSession()
        self.opened: list[str] = []
        self.error: Optional[Exception] = None

    def fail_with(self, exc: Exception) -> None:
        self.error = exc

    async def open(self, device: DeviceRecord) -> MockSession:
        self.opened.append(device.name)
        if self.error is not None:
            raise self.error
        self.session.device = device
        return self.session


def unreachable(host: str = "127.0.0.1") -> DialError:
    return DialError(host, "connection refused")
