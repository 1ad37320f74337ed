"""Script jobs, command results and per-task results."""

from __future__ import annotations

import posixpath
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ScriptJob(BaseModel):
    """One local script scheduled for one orchestration run."""

    local_path: str
    remote_path: str
    index: int = 0

    @property
    def name(self) -> str:
        return posixpath.basename(self.local_path.replace("\\", "/"))


class CommandResult(BaseModel):
    """Outcome of one command on its own SSH channel."""

    command: str
    stdout: bytes = b""
    stderr: bytes = b""
    exit_status: Optional[int] = None
    error: Optional[str] = None
    elapsed_time: float = 0.0

    @property
    def failed(self) -> bool:
        return self.error is not None or self.exit_status != 0

    @property
    def output(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")


class TaskState(str, Enum):
    pending = "pending"
    uploaded = "uploaded"
    executed = "executed"
    cleaned = "cleaned"
    done = "done"
    failed = "failed"


class TaskStage(str, Enum):
    transfer = "transfer"
    execute = "execute"
    cleanup = "cleanup"
    timeout = "timeout"
    cancelled = "cancelled"


class TaskResult(BaseModel):
    """Exactly one per dispatched ScriptJob."""

    job: ScriptJob
    state: TaskState = TaskState.pending
    stage: TaskStage = TaskStage.transfer
    failed_stage: Optional[TaskStage] = None
    stdout: bytes = b""
    stderr: bytes = b""
    exit_status: Optional[int] = None
    error: Optional[str] = None
    cleanup_attempted: bool = False
    cleanup_error: Optional[str] = None
    elapsed_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed_stage is None
