"""Result sink: serialises concurrently produced TaskResults into one stream.

Tasks call ``emit`` from the event loop; a single consumer drains the queue
in ``stream``, so each result is written as one contiguous block and blocks
from different tasks never interleave.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from switchfleet.models.tasks import TaskResult, TaskStage
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)

EOF_TRAILER = b"\n#EOF\n"

_CLOSE = object()


def render_block(result: TaskResult, device: str) -> bytes:
    """Text block for one task, always newline terminated."""
    job = result.job
    parts: list[bytes] = []
    stage = result.failed_stage

    if stage is None:
        parts.append(result.stdout)
        parts.append(b"\n")
    elif stage is TaskStage.transfer:
        parts.append(
            f"Failed to upload script file {job.name} to host {device}\n"
            f"ERROR: {result.error}\n".encode(),
        )
    elif stage is TaskStage.execute:
        if result.stdout:
            parts.append(result.stdout if result.stdout.endswith(b"\n") else result.stdout + b"\n")
        detail = result.stderr.decode("utf-8", errors="replace").strip() or result.error
        parts.append(
            f"Failed to run script_file {job.remote_path}:\n"
            f"ERROR: {detail}\n".encode(),
        )
    elif stage is TaskStage.timeout:
        parts.append(
            f"Timed out running script_file {job.remote_path}:\n"
            f"ERROR: {result.error}\n".encode(),
        )
    else:
        parts.append(f"Cancelled script_file {job.remote_path}\n".encode())

    if result.cleanup_error:
        parts.append(
            f"Failed to remove {job.remote_path}:\nERROR: {result.cleanup_error}\n".encode(),
        )
    return b"".join(parts)


class ResultSink:
    """Single-consumer queue of TaskResults.

    By default blocks are released in completion order. With ``ordered=True``
    they are released in script-list order; a block waits only for the blocks
    of earlier scripts.
    """

    def __init__(self, device: str, *, ordered: bool = False) -> None:
        self.device = device
        self.ordered = ordered
        self._queue: asyncio.Queue = asyncio.Queue()
        self._held: dict[int, bytes] = {}
        self._next_index = 0
        self._closed = False
        self.emitted = 0

    def emit(self, result: TaskResult) -> None:
        if self._closed:
            log.warning("sink.emit_after_close", device=self.device, script=result.job.name)
            return
        self.emitted += 1
        self._queue.put_nowait(result)

    def close(self) -> None:
        """Mark end of results; ``stream`` writes the trailer once drained."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSE)

    def _release(self, result: TaskResult) -> list[bytes]:
        block = render_block(result, self.device)
        if not self.ordered:
            return [block]
        self._held[result.job.index] = block
        ready: list[bytes] = []
        while self._next_index in self._held:
            ready.append(self._held.pop(self._next_index))
            self._next_index += 1
        return ready

    async def stream(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                break
            for block in self._release(item):
                yield block
        # gaps in the index sequence (e.g. a job list that did not start at 0)
        for index in sorted(self._held):
            yield self._held.pop(index)
        yield EOF_TRAILER

    async def collect(self) -> bytes:
        return b"".join([block async for block in self.stream()])
