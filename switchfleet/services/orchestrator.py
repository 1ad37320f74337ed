"""Request-level orchestration: lookup -> dial -> dispatch -> stream -> close.

Everything that can fail the whole request (unknown device, unreadable
script list, unresolved secret, dial/auth failure) happens in ``prepare``
before a single byte is streamed.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator

from switchfleet.config import Settings, settings
from switchfleet.models.snapshot import DeviceSnapshot
from switchfleet.models.tasks import ScriptJob, TaskResult
from switchfleet.services.dispatcher import Dispatcher
from switchfleet.services.inspector import inspect_device
from switchfleet.services.registry import DeviceRegistry
from switchfleet.services.scripts import ScriptCatalog
from switchfleet.services.session import SessionHandle, SessionManager
from switchfleet.services.sink import ResultSink
from switchfleet.utils.logging import get_logger

log = get_logger(__name__)


class Orchestration:
    """A dialled session plus its jobs; owns the session until ``stream`` ends."""

    def __init__(
        self,
        session: SessionHandle,
        jobs: list[ScriptJob],
        dispatcher: Dispatcher,
        *,
        ordered: bool = False,
    ) -> None:
        self.session = session
        self.jobs = jobs
        self.dispatcher = dispatcher
        self.sink = ResultSink(session.device.name, ordered=ordered)
        self.results: list[TaskResult] = []

    async def _dispatch(self) -> None:
        self.results = await self.dispatcher.run(self.session, self.jobs, self.sink)

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield one block per script as tasks finish, then the ``#EOF`` trailer."""
        runner = asyncio.create_task(self._dispatch())
        try:
            async for block in self.sink.stream():
                yield block
            await runner
        finally:
            if not runner.done():
                log.warning("orchestrate.aborted", device=self.session.device.name)
                runner.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await runner
            await self.session.close()


async def prepare(
    name: str,
    *,
    registry: DeviceRegistry,
    catalog: ScriptCatalog,
    sessions: SessionManager,
    dispatcher: Dispatcher,
    ordered: bool = False,
) -> Orchestration:
    device = registry.get(name)
    jobs = catalog.jobs()
    session = await sessions.open(device)
    log.info("orchestrate.prepared", device=name, jobs=len(jobs), ordered=ordered)
    return Orchestration(session, jobs, dispatcher, ordered=ordered)


async def inspect(
    name: str,
    *,
    registry: DeviceRegistry,
    sessions: SessionManager,
    cfg: Settings | None = None,
) -> DeviceSnapshot:
    device = registry.get(name)
    async with await sessions.open(device) as session:
        return await inspect_device(session, cfg=cfg or settings)
