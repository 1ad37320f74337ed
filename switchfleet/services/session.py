"""SSH session manager: one authenticated paramiko transport per request.

paramiko is blocking, so every operation runs in a per-session
ThreadPoolExecutor and is awaited from the event loop. Each blocking call
gets a ``CancelToken``; when the awaiting coroutine times out or is cancelled
the token closes the paramiko channel bound to it, which unblocks the worker
thread, and the coroutine waits for the worker to finish before it returns.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Optional

import paramiko

from switchfleet.config import Settings, settings
from switchfleet.errors import (
    AuthError,
    DialError,
    HostKeyError,
    OperationCancelled,
    OperationTimeout,
)
from switchfleet.models.devices import DeviceRecord
from switchfleet.models.tasks import CommandResult
from switchfleet.services import channels
from switchfleet.services.secrets import SecretResolver, secret_resolver
from switchfleet.services.trust import apply_host_key_policy
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)


class CancelToken:
    """Thread-safe cancel flag that closes bound paramiko resources on cancel."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._bound: list[Any] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def bind(self, resource: Any) -> None:
        """Register something with a ``close()`` to be closed on cancel."""
        with self._lock:
            if not self._event.is_set():
                self._bound.append(resource)
                return
        _close_quietly(resource)

    def cancel(self) -> None:
        with self._lock:
            self._event.set()
            bound, self._bound = self._bound, []
        for resource in bound:
            _close_quietly(resource)

    def check(self, operation: str) -> None:
        if self._event.is_set():
            raise OperationCancelled(operation)

    def wait(self, seconds: float) -> bool:
        return self._event.wait(seconds)


def _close_quietly(resource: Any) -> None:
    try:
        resource.close()
    except Exception as exc:
        log.debug("session.close_bound_failed", error=str(exc))


async def run_blocking(
    executor: Executor,
    fn: Callable[..., Any],
    *args: Any,
    timeout: Optional[float],
    operation: str,
) -> Any:
    """Run ``fn(*args, token)`` in *executor*, bounded by *timeout* seconds."""
    loop = asyncio.get_running_loop()
    token = CancelToken()
    fut = loop.run_in_executor(executor, fn, *args, token)
    try:
        return await asyncio.wait_for(asyncio.shield(fut), timeout)
    except asyncio.TimeoutError:
        token.cancel()
        await _settle(fut)
        raise OperationTimeout(operation, timeout or 0.0) from None
    except asyncio.CancelledError:
        token.cancel()
        await _settle(fut)
        raise


async def _settle(fut: asyncio.Future) -> None:
    """Wait for an abandoned worker so its channel is closed before we move on."""
    try:
        await fut
    except Exception as exc:
        log.debug("session.worker_abandoned", error=type(exc).__name__)


class SessionHandle:
    """One authenticated SSH transport, shared by every task of a request."""

    def __init__(
        self,
        device: DeviceRecord,
        client: paramiko.SSHClient,
        executor: ThreadPoolExecutor,
        cfg: Settings | None = None,
    ) -> None:
        self.device = device
        self.client = client
        self._executor = executor
        self._cfg = cfg or settings
        self._closed = False
        self._close_lock = asyncio.Lock()

    @property
    def max_workers(self) -> int:
        return self._executor._max_workers

    async def call(
        self,
        fn: Callable[..., Any],
        *args: Any,
        timeout: Optional[float],
        operation: str,
    ) -> Any:
        if self._closed:
            raise RuntimeError(f"session to {self.device.name} is closed")
        return await run_blocking(
            self._executor, fn, *args, timeout=timeout, operation=operation,
        )

    # ── sub-channel operations ────────────────────────────────────────

    async def upload(
        self, local_path: str, remote_path: str, *, timeout: Optional[float] = None,
    ) -> int:
        return await channels.upload(self, local_path, remote_path, timeout=timeout)

    async def run_command(
        self, command: str, *, timeout: Optional[float] = None,
    ) -> CommandResult:
        return await channels.run_command(self, command, timeout=timeout)

    # ── lifecycle ─────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close the transport. Safe to call more than once."""
        async with self._close_lock:
            if self._closed:
                return
            self._closed = True
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(self._executor, self.client.close)
            except Exception as exc:
                log.warning("session.close_failed", device=self.device.name, error=str(exc))
            finally:
                self._executor.shutdown(wait=False)
            log.info("session.closed", device=self.device.name)

    async def __aenter__(self) -> "SessionHandle":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class SessionManager:
    """Dials devices and hands out SessionHandles."""

    def __init__(
        self,
        cfg: Settings | None = None,
        resolver: SecretResolver | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._resolver = resolver or secret_resolver

    def _executor_for(self, device: DeviceRecord) -> ThreadPoolExecutor:
        # one blocking call per pool slot, plus one for close()
        workers = self._cfg.switchfleet_max_concurrency + 1
        return ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"ssh-{device.name}")

    def _connect_sync(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        token: CancelToken,
    ) -> paramiko.SSHClient:
        timeout = self._cfg.switchfleet_connect_timeout_seconds
        client = paramiko.SSHClient()
        token.bind(client)
        kwargs: dict = dict(
            hostname=host,
            port=port,
            username=username,
            password=password or None,
            timeout=timeout,
            banner_timeout=timeout,
            auth_timeout=timeout,
            allow_agent=False,
            look_for_keys=False,
        )
        if self._cfg.switchfleet_ssh_key_path:
            kwargs["key_filename"] = self._cfg.switchfleet_ssh_key_path
        try:
            apply_host_key_policy(client, self._cfg)
            client.connect(**kwargs)
            token.check("dial")
        except HostKeyError:
            client.close()
            raise
        except paramiko.BadHostKeyException as exc:
            client.close()
            raise HostKeyError(host, str(exc)) from exc
        except paramiko.AuthenticationException as exc:
            client.close()
            raise AuthError(host, username) from exc
        except (paramiko.SSHException, OSError, EOFError) as exc:
            client.close()
            raise DialError(host, str(exc) or type(exc).__name__) from exc
        except BaseException:
            client.close()
            raise
        return client

    async def open(self, device: DeviceRecord) -> SessionHandle:
        """Authenticate to *device*; raises instead of returning a partial session."""
        password = self._resolver.resolve(device.secret, device=device.name)
        host, port = device.endpoint(self._cfg.switchfleet_ssh_port)
        executor = self._executor_for(device)
        log.info("session.connecting", device=device.name, host=host, port=port)
        try:
            client = await run_blocking(
                executor,
                self._connect_sync,
                host,
                port,
                device.username,
                password,
                # dial, banner and auth each get the connect timeout
                timeout=3 * self._cfg.switchfleet_connect_timeout_seconds,
                operation="dial",
            )
        except OperationTimeout as exc:
            executor.shutdown(wait=False)
            log.warning("session.dial_timeout", device=device.name, host=host)
            raise DialError(host, str(exc)) from exc
        except (DialError, AuthError) as exc:
            executor.shutdown(wait=False)
            log.warning("session.dial_failed", device=device.name, host=host, error=str(exc))
            raise
        except BaseException:
            executor.shutdown(wait=False)
            raise
        log.info("session.opened", device=device.name, host=host)
        return SessionHandle(device, client, executor, self._cfg)


session_manager = SessionManager()
