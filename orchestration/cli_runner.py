# orchestration/cli_runner.py
"""Command-line runner for a single article job."""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path

import structlog
from rich.console import Console

from config import settings
from core.exceptions import RetryExhausted
from core.llm_interface import LLMService
from models import GenerateJob, JobState, Stage
from orchestration.job_queue import InMemoryJobQueue
from orchestration.stage_pipeline import ContentGenerator, StagePipeline
from orchestration.worker_pool import WorkerPool
from storage.job_store import FileJobStore
from utils.logging import setup_logging

logger = structlog.get_logger(__name__)


def default_idempotency_key(topic: str, material: str) -> str:
    """Derive a stable key so re-running the same request reuses its job."""
    digest = hashlib.sha256(f"{topic}\n{material}".encode("utf-8")).hexdigest()
    return f"article-{digest[:16]}"


async def run_article_job(
    generator: ContentGenerator,
    topic: str,
    *,
    key: str | None = None,
    material: str = "",
    store_dir: str = settings.JOB_STORE_DIR,
    workers: int = settings.WORKER_CONCURRENCY,
) -> JobState:
    """Submit one job, let a worker pool process it, and return the final state."""
    queue = InMemoryJobQueue()
    pipeline = StagePipeline(generator, FileJobStore(store_dir), queue)
    inputs = {"topic": topic}
    if material:
        inputs["material"] = material
    job = GenerateJob(
        idempotency_key=key or default_idempotency_key(topic, material),
        inputs=inputs,
    )
    job_id = await pipeline.submit(job)

    state = await pipeline.get_state(job_id)
    if state is not None and state.is_terminal:
        # Stored result from an earlier run with the same key.
        return state
    # A job left unfinished by an earlier process is not on this fresh queue.
    await queue.enqueue(job_id)

    pool = WorkerPool(pipeline, queue, concurrency=workers)
    pool.start()
    try:
        await pool.drain()
    finally:
        await pool.stop()

    state = await pipeline.get_state(job_id)
    if state is None:  # pragma: no cover - store was emptied underneath us
        raise RetryExhausted(job_id, 0, ["job state disappeared"])
    return state


async def _run(
    topic: str,
    key: str | None,
    material_path: str | None,
    store_dir: str,
    workers: int,
) -> int:
    material = ""
    if material_path:
        material = Path(material_path).read_text(encoding="utf-8")
    service = LLMService()
    try:
        state = await run_article_job(
            service,
            topic,
            key=key,
            material=material,
            store_dir=store_dir,
            workers=workers,
        )
    finally:
        await service.aclose()

    console = Console()
    if state.stage == Stage.PUBLISH and state.markdown:
        console.print(state.markdown, markup=False, highlight=False)
        for badge in state.badges:
            console.print(
                f"[{badge.tone.value}] {badge.label}: {badge.text}",
                markup=False,
                highlight=False,
            )
        return 0
    console.print(
        f"Job {state.job_id} ended in {state.stage.value}: "
        f"{state.failure_reason or 'no reason recorded'}",
        markup=False,
        highlight=False,
    )
    return 1


def run(
    topic: str,
    key: str | None = None,
    material_path: str | None = None,
    store_dir: str = settings.JOB_STORE_DIR,
    workers: int = settings.WORKER_CONCURRENCY,
) -> int:
    """Set up logging, run one job and return a process exit code."""
    setup_logging()
    try:
        return asyncio.run(_run(topic, key, material_path, store_dir, workers))
    except KeyboardInterrupt:
        logger.info("Article pipeline shutting down due to KeyboardInterrupt.")
        return 130
    except OSError as exc:
        logger.error("Could not read input or write job state.", error=str(exc))
        return 2
