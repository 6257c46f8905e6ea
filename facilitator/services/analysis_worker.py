from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable


@dataclass
class AnalysisJob:
    session_id: str
    seq: int


class AnalysisWorker:
    """Runs background analyses off the webhook request path.

    Jobs go onto a queue drained by a fixed pool of tasks. A failing job is
    logged and the worker moves on to the next one.
    """

    def __init__(self, handler: Callable[[AnalysisJob], Awaitable[None]], concurrency: int = 1):
        self.handler = handler
        self.concurrency = max(1, concurrency)
        self.queue: asyncio.Queue[AnalysisJob] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._run(idx), name=f"analysis-worker-{idx}")
            for idx in range(self.concurrency)
        ]
        self.logger.info("Started %d analysis workers", self.concurrency)

    def submit(self, job: AnalysisJob) -> None:
        self.queue.put_nowait(job)

    async def join(self) -> None:
        await self.queue.join()

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _run(self, idx: int) -> None:
        while True:
            job = await self.queue.get()
            try:
                await self.handler(job)
            except Exception:
                self.logger.exception(
                    "Analysis job failed worker=%d session_id=%s seq=%d", idx, job.session_id, job.seq
                )
            finally:
                self.queue.task_done()
