# storage/job_store.py
"""Persistence for JobState records keyed by idempotency key."""

from __future__ import annotations

import asyncio
import hashlib
import os
import tempfile
from typing import Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from config import settings
from models import JobState

logger = structlog.get_logger(__name__)


@runtime_checkable
class JobStore(Protocol):
    async def read(self, key: str) -> JobState | None: ...

    async def write(self, state: JobState) -> None: ...

    async def delete(self, key: str) -> bool: ...


class InMemoryJobStore:
    """Dict-backed store. Reads and writes exchange deep copies."""

    def __init__(self) -> None:
        self._states: dict[str, JobState] = {}

    async def read(self, key: str) -> JobState | None:
        state = self._states.get(key)
        return state.model_copy(deep=True) if state is not None else None

    async def write(self, state: JobState) -> None:
        self._states[state.job_id] = state.model_copy(deep=True)

    async def delete(self, key: str) -> bool:
        return self._states.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._states)


class FileJobStore:
    """Store each JobState as a JSON file; disk I/O runs off the event loop."""

    def __init__(self, base_dir: str = settings.JOB_STORE_DIR) -> None:
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def path_for(self, key: str) -> str:
        # Keys are caller supplied; hash them into a safe file name.
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.base_dir, f"job_{digest}.json")

    async def read(self, key: str) -> JobState | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_sync, key)

    def _read_sync(self, key: str) -> JobState | None:
        path = self.path_for(key)
        if not os.path.exists(path):
            return None
        with open(path, encoding="utf-8") as f:
            raw = f.read()
        try:
            return JobState.model_validate_json(raw)
        except ValidationError:
            logger.error("Stored job state is unreadable.", key=key, path=path)
            raise

    async def write(self, state: JobState) -> None:
        payload = state.model_dump_json(indent=2)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_sync, state.job_id, payload)

    def _write_sync(self, key: str, payload: str) -> None:
        path = self.path_for(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    async def delete(self, key: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._delete_sync, key)

    def _delete_sync(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        return True
