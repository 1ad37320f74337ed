"""Script task: upload -> privileged execute -> remote cleanup -> emit.

Cleanup runs whenever the remote file may exist, including after an
execution failure, a timeout or a cancelled request. Every task emits exactly
one TaskResult.
"""

from __future__ import annotations

import asyncio
import shlex
import time
from typing import Callable, Optional, Protocol

from switchfleet.config import Settings, settings
from switchfleet.errors import OperationTimeout, TransferError
from switchfleet.models.devices import DeviceRecord
from switchfleet.models.tasks import (
    CommandResult,
    ScriptJob,
    TaskResult,
    TaskStage,
    TaskState,
)
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)


class RemoteSession(Protocol):
    """What a task needs from a session (SessionHandle, or a test double)."""

    device: DeviceRecord

    async def upload(self, local_path: str, remote_path: str, *, timeout: Optional[float] = None) -> int: ...

    async def run_command(self, command: str, *, timeout: Optional[float] = None) -> CommandResult: ...


class Deadline:
    """Absolute batch deadline used to clamp per-operation timeouts."""

    def __init__(self, seconds: Optional[float]) -> None:
        self.seconds = seconds
        self._at = time.monotonic() + seconds if seconds else None

    def remaining(self) -> Optional[float]:
        if self._at is None:
            return None
        return self._at - time.monotonic()

    def clamp(self, timeout: Optional[float], operation: str) -> Optional[float]:
        # 0 means no per-operation limit
        timeout = timeout or None
        remaining = self.remaining()
        if remaining is None:
            return timeout
        if remaining <= 0:
            raise OperationTimeout(f"batch deadline before {operation}", self.seconds or 0.0)
        return min(timeout, remaining) if timeout else remaining


def _describe_failure(result: CommandResult) -> str:
    if result.error:
        return result.error
    return f"exit status {result.exit_status}"


class ScriptTask:
    """One script on one device. ``run`` never raises except on cancellation."""

    def __init__(
        self,
        session: RemoteSession,
        job: ScriptJob,
        *,
        cfg: Settings | None = None,
        deadline: Deadline | None = None,
        emit: Callable[[TaskResult], None] | None = None,
    ) -> None:
        self.session = session
        self.job = job
        self._cfg = cfg or settings
        self._deadline = deadline or Deadline(None)
        self._emit = emit
        self.result = TaskResult(job=job)
        self._remote_may_exist = False

    @property
    def _device(self) -> str:
        return self.session.device.name

    def _fail(self, stage: TaskStage, error: str) -> None:
        self.result.state = TaskState.failed
        self.result.failed_stage = stage
        self.result.error = error
        log.warning(
            "task.failed",
            device=self._device,
            script=self.job.name,
            stage=stage.value,
            error=error,
        )

    # ── stages ────────────────────────────────────────────────────────

    async def _transfer(self) -> bool:
        self.result.stage = TaskStage.transfer
        timeout = self._deadline.clamp(
            self._cfg.switchfleet_transfer_timeout_seconds, "upload",
        )
        # From here on a partial remote file is possible
        self._remote_may_exist = True
        try:
            await self.session.upload(self.job.local_path, self.job.remote_path, timeout=timeout)
        except TransferError as exc:
            self._remote_may_exist = exc.remote_created
            self._fail(TaskStage.transfer, exc.hint)
            return False
        self.result.state = TaskState.uploaded
        return True

    async def _execute(self) -> None:
        self.result.stage = TaskStage.execute
        timeout = self._deadline.clamp(
            self._cfg.switchfleet_command_timeout_seconds, "execute",
        )
        command = f"{self._cfg.switchfleet_privileged_shell} {shlex.quote(self.job.remote_path)}"
        res = await self.session.run_command(command, timeout=timeout)
        self.result.stdout = res.stdout
        self.result.stderr = res.stderr
        self.result.exit_status = res.exit_status
        if res.failed:
            self._fail(TaskStage.execute, _describe_failure(res))
        else:
            self.result.state = TaskState.executed

    async def _cleanup(self) -> None:
        self.result.stage = TaskStage.cleanup
        self.result.cleanup_attempted = True
        command = f"{self._cfg.switchfleet_remove_command} {shlex.quote(self.job.remote_path)}"
        try:
            res = await self.session.run_command(
                command, timeout=self._cfg.switchfleet_cleanup_timeout_seconds,
            )
        except OperationTimeout as exc:
            self.result.cleanup_error = exc.hint
        except Exception as exc:
            self.result.cleanup_error = f"{type(exc).__name__}: {exc}"
        else:
            if res.failed:
                detail = res.stderr.decode("utf-8", errors="replace").strip()
                self.result.cleanup_error = detail or _describe_failure(res)
        if self.result.cleanup_error:
            log.warning(
                "task.cleanup_failed",
                device=self._device,
                remote=self.job.remote_path,
                error=self.result.cleanup_error,
            )
        elif self.result.state is TaskState.executed:
            self.result.state = TaskState.cleaned

    # ── driver ────────────────────────────────────────────────────────

    async def run(self) -> TaskResult:
        started = time.monotonic()
        cancelled = False
        try:
            if await self._transfer():
                await self._execute()
        except OperationTimeout as exc:
            self._fail(TaskStage.timeout, f"{self.result.stage.value}: {exc.hint}")
        except asyncio.CancelledError:
            cancelled = True
            self._fail(TaskStage.cancelled, f"cancelled during {self.result.stage.value}")
        except Exception as exc:
            log.exception("task.unexpected_error", device=self._device, script=self.job.name)
            self._fail(self.result.stage, f"{type(exc).__name__}: {exc}")

        if self._remote_may_exist:
            try:
                await asyncio.shield(self._cleanup())
            except asyncio.CancelledError:
                # cleanup keeps running in the background under the shield
                cancelled = True

        # a failed cleanup is reported but does not change the outcome
        if self.result.state in (TaskState.executed, TaskState.cleaned):
            self.result.state = TaskState.done
        self.result.elapsed_time = time.monotonic() - started
        log.info(
            "task.finished",
            device=self._device,
            script=self.job.name,
            state=self.result.state.value,
            failed_stage=self.result.failed_stage.value if self.result.failed_stage else None,
            cleanup_attempted=self.result.cleanup_attempted,
            elapsed=round(self.result.elapsed_time, 3),
        )
        if self._emit is not None:
            self._emit(self.result)
        if cancelled:
            raise asyncio.CancelledError()
        return self.result
