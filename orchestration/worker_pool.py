# orchestration/worker_pool.py
"""Worker tasks that pull job keys off the queue and run them to completion."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from config import settings
from core.exceptions import RetryExhausted
from models import Stage
from orchestration.job_queue import JobQueue
from orchestration.stage_pipeline import StagePipeline

logger = structlog.get_logger(__name__)


@dataclass
class WorkerPool:
    """Run up to ``concurrency`` jobs at once; stages of one job stay sequential."""

    pipeline: StagePipeline
    queue: JobQueue
    concurrency: int = settings.WORKER_CONCURRENCY
    outcomes: dict[str, Stage] = field(default_factory=dict)
    _tasks: list[asyncio.Task] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._worker(index), name=f"article-worker-{index}")
            for index in range(self.concurrency)
        ]
        logger.info("Worker pool started.", workers=self.concurrency)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Worker pool stopped.")

    async def drain(self) -> None:
        """Wait for every queued job to be handled, then stop the workers."""
        await self.queue.join()
        await self.stop()

    async def _worker(self, index: int) -> None:
        while True:
            handle = await self.queue.dequeue()
            log = logger.bind(worker=index, job_id=handle.key)
            try:
                state = await self.pipeline.run_job(handle.key)
            except RetryExhausted as exc:
                self.outcomes[handle.key] = Stage.FAILED
                log.warning("Job exhausted its attempts.", attempts=exc.attempts)
                await self.queue.ack(handle)
            except asyncio.CancelledError:
                await self.queue.nack(handle)
                raise
            except Exception:
                log.exception("Unexpected error while running job.")
                await self.queue.nack(handle)
            else:
                self.outcomes[handle.key] = state.stage
                log.info("Job finished.", stage=state.stage.value)
                await self.queue.ack(handle)
