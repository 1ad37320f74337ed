"""Dispatcher: fan a script list out over one session with a bounded pool."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from switchfleet.config import Settings, settings
from switchfleet.models.tasks import ScriptJob, TaskResult, TaskStage, TaskState
from switchfleet.services.sink import ResultSink
from switchfleet.services.tasks import Deadline, RemoteSession, ScriptTask
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)


class Dispatcher:
    """Runs one ScriptTask per job, at most ``max_concurrency`` at a time.

    ``run`` is the join barrier: it returns only when every task is terminal,
    and the session stays open until then. It does not close the session.
    """

    def __init__(self, cfg: Settings | None = None, *, max_concurrency: Optional[int] = None) -> None:
        self._cfg = cfg or settings
        self.max_concurrency = max_concurrency or self._cfg.switchfleet_max_concurrency

    async def _run_one(
        self,
        session: RemoteSession,
        job: ScriptJob,
        pool: asyncio.Semaphore,
        deadline: Deadline,
        sink: Optional[ResultSink],
    ) -> TaskResult:
        emit = sink.emit if sink is not None else None
        task = ScriptTask(session, job, cfg=self._cfg, deadline=deadline, emit=emit)
        try:
            await pool.acquire()
        except asyncio.CancelledError:
            # never started: nothing remote to clean up
            task.result.state = TaskState.failed
            task.result.failed_stage = TaskStage.cancelled
            task.result.error = "cancelled before start"
            if emit is not None:
                emit(task.result)
            raise
        try:
            return await task.run()
        finally:
            pool.release()

    async def run(
        self,
        session: RemoteSession,
        jobs: Sequence[ScriptJob],
        sink: Optional[ResultSink] = None,
    ) -> list[TaskResult]:
        """Run every job; results come back in job order, one per job."""
        limit = self.max_concurrency
        workers = getattr(session, "max_workers", None)
        if workers:
            # never queue more blocking calls than the session has threads
            limit = min(limit, max(1, workers - 1))
        pool = asyncio.Semaphore(limit)
        deadline = Deadline(self._cfg.switchfleet_batch_timeout_seconds or None)
        device = session.device.name
        log.info(
            "dispatcher.started",
            device=device,
            jobs=len(jobs),
            max_concurrency=limit,
        )
        tasks = [
            asyncio.create_task(
                self._run_one(session, job, pool, deadline, sink),
                name=f"script-{device}-{job.name}",
            )
            for job in jobs
        ]
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            # gather already cancelled the children; wait for their cleanup
            log.warning("dispatcher.cancelled", device=device, jobs=len(jobs))
            if tasks:
                await asyncio.wait(tasks)
            raise
        finally:
            if sink is not None:
                sink.close()

        results: list[TaskResult] = []
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, TaskResult):
                results.append(outcome)
            else:
                # cancelled individually from outside; the task still emitted
                results.append(
                    TaskResult(
                        job=job,
                        state=TaskState.failed,
                        failed_stage=TaskStage.cancelled,
                        error=repr(outcome),
                    ),
                )
        failed = sum(1 for r in results if not r.ok)
        log.info(
            "dispatcher.finished",
            device=device,
            jobs=len(results),
            ok=len(results) - failed,
            failed=failed,
        )
        return results


dispatcher = Dispatcher()
