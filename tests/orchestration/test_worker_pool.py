# tests/orchestration/test_worker_pool.py
import asyncio
import unittest
from unittest.mock import AsyncMock

import pytest

from core.exceptions import GenerationError, RetryExhausted
from models import GenerateJob, Stage
from orchestration.job_queue import InMemoryJobQueue, QueueStatus
from orchestration.stage_pipeline import StagePipeline
from orchestration.worker_pool import WorkerPool
from storage.job_store import InMemoryJobStore


def _make(generator, concurrency=2, max_attempts=3):
    queue = InMemoryJobQueue()
    pipeline = StagePipeline(
        generator,
        InMemoryJobStore(),
        queue,
        max_attempts=max_attempts,
        stage_timeout=1.0,
        backoff_base=0.0,
        backoff_max=0.0,
    )
    return pipeline, queue, WorkerPool(pipeline, queue, concurrency=concurrency)


@pytest.mark.asyncio
async def test_pool_runs_jobs_to_completion(scripted_generator):
    pipeline, queue, pool = _make(scripted_generator())
    for i in range(3):
        await pipeline.submit(
            GenerateJob(idempotency_key=f"job-{i}", inputs={"topic": f"Topic {i}"})
        )

    pool.start()
    await asyncio.wait_for(pool.drain(), timeout=5)

    assert pool.outcomes == {f"job-{i}": Stage.PUBLISH for i in range(3)}
    assert not pool.running
    for i in range(3):
        assert queue.handle_for(f"job-{i}").status is QueueStatus.DONE


@pytest.mark.asyncio
async def test_pool_acks_exhausted_jobs(scripted_generator):
    generator = scripted_generator({"BRIEF": GenerationError("down")})
    pipeline, queue, pool = _make(generator, concurrency=1, max_attempts=2)
    await pipeline.submit(GenerateJob(idempotency_key="bad", inputs={"topic": "T"}))

    pool.start()
    await asyncio.wait_for(pool.drain(), timeout=5)

    assert pool.outcomes == {"bad": Stage.FAILED}
    assert queue.handle_for("bad").status is QueueStatus.DONE
    assert (await pipeline.get_state("bad")).stage is Stage.FAILED


@pytest.mark.asyncio
async def test_jobs_run_in_parallel(scripted_generator):
    running = 0
    peak = 0

    async def slow_brief():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.05)
        running -= 1
        return "A brief."

    pipeline, _, pool = _make(scripted_generator({"BRIEF": slow_brief}), concurrency=3)
    for i in range(3):
        await pipeline.submit(GenerateJob(idempotency_key=f"p{i}", inputs={"topic": "T"}))

    pool.start()
    await asyncio.wait_for(pool.drain(), timeout=5)
    assert peak == 3


def test_concurrency_must_be_positive(scripted_generator):
    pipeline, queue, _ = _make(scripted_generator())
    with pytest.raises(ValueError):
        WorkerPool(pipeline, queue, concurrency=0)


class TestWorkerPoolErrors(unittest.IsolatedAsyncioTestCase):
    async def test_unexpected_error_nacks_handle(self):
        queue = InMemoryJobQueue(max_deliveries=2)
        pipeline = AsyncMock()
        pipeline.run_job = AsyncMock(side_effect=RuntimeError("bug"))
        pool = WorkerPool(pipeline, queue, concurrency=1)
        await queue.enqueue("k")

        pool.start()
        await asyncio.wait_for(pool.drain(), timeout=5)

        self.assertEqual(pipeline.run_job.await_count, 2)
        self.assertIs(queue.handle_for("k").status, QueueStatus.DEAD)
        self.assertEqual(pool.outcomes, {})

    async def test_retry_exhausted_is_acked(self):
        queue = InMemoryJobQueue()
        pipeline = AsyncMock()
        pipeline.run_job = AsyncMock(side_effect=RetryExhausted("k", 3, ["x"]))
        pool = WorkerPool(pipeline, queue, concurrency=1)
        await queue.enqueue("k")

        pool.start()
        await asyncio.wait_for(pool.drain(), timeout=5)

        pipeline.run_job.assert_awaited_once_with("k")
        self.assertIs(queue.handle_for("k").status, QueueStatus.DONE)
        self.assertEqual(pool.outcomes, {"k": Stage.FAILED})
