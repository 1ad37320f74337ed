"""File-transfer and command sub-channels over a shared SSH transport.

Each operation opens its own channel (an SFTP subsystem or an exec session),
uses it once and closes it. The ``*_sync`` functions run in the session's
worker threads; ``upload`` and ``run_command`` are the awaitable entry points.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Optional

import paramiko

from switchfleet.errors import OperationCancelled, TransferError
from switchfleet.models.tasks import CommandResult
from switchfleet.utils.logging import get_logger

if TYPE_CHECKING:
    from switchfleet.services.session import CancelToken, SessionHandle

log = get_logger(__name__)

CHUNK_SIZE = 32768
RECV_SIZE = 65535
POLL_INTERVAL = 0.05


# ── file transfer ─────────────────────────────────────────────────────────


def _upload_sync(
    client: paramiko.SSHClient,
    local_path: str,
    remote_path: str,
    token: "CancelToken",
) -> int:
    created = False
    written = 0
    try:
        src = open(local_path, "rb")
    except OSError as exc:
        raise TransferError(
            remote_path,
            f"cannot open local script {local_path}: {exc.strerror}",
            remote_created=False,
        ) from exc
    try:
        sftp = client.open_sftp()
        token.bind(sftp)
        try:
            # "wb" truncates: a re-run never appends to a stale copy
            with sftp.open(remote_path, "wb") as dst:
                created = True
                while True:
                    token.check("upload")
                    chunk = src.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    dst.write(chunk)
                    written += len(chunk)
        finally:
            sftp.close()
    except (OperationCancelled, TransferError):
        raise
    except (OSError, EOFError, paramiko.SSHException) as exc:
        raise TransferError(
            remote_path, str(exc) or type(exc).__name__, remote_created=created,
        ) from exc
    finally:
        src.close()
    return written


async def upload(
    session: "SessionHandle",
    local_path: str,
    remote_path: str,
    *,
    timeout: Optional[float] = None,
) -> int:
    """Copy *local_path* to *remote_path*, overwriting. Returns bytes written."""
    written = await session.call(
        _upload_sync,
        session.client,
        local_path,
        remote_path,
        timeout=timeout,
        operation=f"upload {remote_path}",
    )
    log.debug("channel.uploaded", device=session.device.name, remote=remote_path, bytes=written)
    return written


# ── command execution ─────────────────────────────────────────────────────


def _exec_sync(
    client: paramiko.SSHClient,
    command: str,
    token: "CancelToken",
) -> CommandResult:
    started = time.monotonic()
    stdout, stderr = bytearray(), bytearray()

    transport = client.get_transport()
    if transport is None or not transport.is_active():
        return CommandResult(command=command, error="transport is not active")
    try:
        chan = transport.open_session()
    except (OSError, EOFError, paramiko.SSHException) as exc:
        return CommandResult(
            command=command,
            error=f"cannot open channel: {exc}",
            elapsed_time=time.monotonic() - started,
        )
    token.bind(chan)

    try:
        chan.exec_command(command)
        while True:
            progressed = False
            if chan.recv_ready():
                stdout += chan.recv(RECV_SIZE)
                progressed = True
            if chan.recv_stderr_ready():
                stderr += chan.recv_stderr(RECV_SIZE)
                progressed = True
            if progressed:
                continue
            if chan.exit_status_ready():
                break
            token.check("command")
            token.wait(POLL_INTERVAL)
        # output can race the exit-status message
        while chan.recv_ready():
            stdout += chan.recv(RECV_SIZE)
        while chan.recv_stderr_ready():
            stderr += chan.recv_stderr(RECV_SIZE)
        token.check("command")
        status = chan.recv_exit_status()
    except OperationCancelled:
        raise
    except (OSError, EOFError, paramiko.SSHException) as exc:
        return CommandResult(
            command=command,
            stdout=bytes(stdout),
            stderr=bytes(stderr),
            error=str(exc) or type(exc).__name__,
            elapsed_time=time.monotonic() - started,
        )
    finally:
        chan.close()

    return CommandResult(
        command=command,
        stdout=bytes(stdout),
        stderr=bytes(stderr),
        exit_status=status,
        error="channel closed without exit status" if status == -1 else None,
        elapsed_time=time.monotonic() - started,
    )


async def run_command(
    session: "SessionHandle",
    command: str,
    *,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run *command* on a fresh channel.

    Non-zero exits and transport errors come back in the result; only a
    deadline expiry (``OperationTimeout``) or cancellation is raised.
    """
    result: CommandResult = await session.call(
        _exec_sync,
        session.client,
        command,
        timeout=timeout,
        operation=f"command {command!r}",
    )
    log.debug(
        "channel.command_done",
        device=session.device.name,
        command=command,
        exit_status=result.exit_status,
        error=result.error,
    )
    return result
