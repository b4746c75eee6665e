# orchestration/job_queue.py
"""Work queue that hands job keys from the pipeline to the workers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)


class QueueStatus(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    DONE = "done"
    DEAD = "dead"


@dataclass
class QueueHandle:
    """A delivery of one job key; ack or nack it exactly once per dequeue."""

    key: str
    payload: dict[str, Any] = field(default_factory=dict)
    status: QueueStatus = QueueStatus.QUEUED
    deliveries: int = 0


@runtime_checkable
class JobQueue(Protocol):
    """Queue of job keys with at-least-once delivery."""

    async def enqueue(
        self, key: str, payload: dict[str, Any] | None = None
    ) -> QueueHandle: ...

    async def dequeue(self) -> QueueHandle: ...

    async def ack(self, handle: QueueHandle) -> None: ...

    async def nack(self, handle: QueueHandle) -> None: ...

    async def join(self) -> None: ...


class InMemoryJobQueue:
    """asyncio-backed queue; a key is accepted once for the queue's lifetime."""

    def __init__(self, max_deliveries: int = 3) -> None:
        self.max_deliveries = max_deliveries
        self._queue: asyncio.Queue[QueueHandle] = asyncio.Queue()
        self._handles: dict[str, QueueHandle] = {}

    def __len__(self) -> int:
        return self._queue.qsize()

    def handle_for(self, key: str) -> QueueHandle | None:
        return self._handles.get(key)

    async def enqueue(
        self, key: str, payload: dict[str, Any] | None = None
    ) -> QueueHandle:
        existing = self._handles.get(key)
        if existing is not None:
            logger.debug(
                "Key already known to queue; not re-enqueued.",
                key=key,
                status=existing.status.value,
            )
            return existing
        handle = QueueHandle(key=key, payload=dict(payload or {}))
        self._handles[key] = handle
        self._queue.put_nowait(handle)
        logger.debug("Enqueued job.", key=key, depth=self._queue.qsize())
        return handle

    async def dequeue(self) -> QueueHandle:
        handle = await self._queue.get()
        handle.status = QueueStatus.ACTIVE
        handle.deliveries += 1
        return handle

    async def ack(self, handle: QueueHandle) -> None:
        handle.status = QueueStatus.DONE
        self._queue.task_done()

    async def nack(self, handle: QueueHandle) -> None:
        """Return ``handle`` to the queue unless it ran out of deliveries."""
        if handle.deliveries >= self.max_deliveries:
            handle.status = QueueStatus.DEAD
            logger.error(
                "Job exceeded its delivery limit; dropping.",
                key=handle.key,
                deliveries=handle.deliveries,
            )
        else:
            handle.status = QueueStatus.QUEUED
            self._queue.put_nowait(handle)
            logger.warning(
                "Job returned to queue.", key=handle.key, deliveries=handle.deliveries
            )
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every enqueued delivery has been acked or dropped."""
        await self._queue.join()
