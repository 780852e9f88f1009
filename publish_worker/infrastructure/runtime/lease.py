"""In-process per-dataset lease."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from publish_worker.domain.errors import DatasetBusyError
from publish_worker.domain.ports import DatasetLeasePort

logger = structlog.get_logger()


class LocalDatasetLease(DatasetLeasePort):
    """Serializes jobs on the same dataset within one worker process.

    A job waits up to ``timeout_seconds`` for the lease before giving up. A
    dataset's lock is dropped once no job holds or waits for it.
    """

    def __init__(self, timeout_seconds: float = 30) -> None:
        """Initialize dataset lease."""
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @property
    def active(self) -> set[str]:
        """Dataset ids currently held or waited on."""
        return set(self._locks)

    @asynccontextmanager
    async def hold(self, dataset_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(dataset_id, asyncio.Lock())
        self._users[dataset_id] = self._users.get(dataset_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as e:
                raise DatasetBusyError(f"Dataset {dataset_id} is held by another job") from e

            logger.debug("dataset_lease_acquired", dataset_id=dataset_id)
            try:
                yield
            finally:
                lock.release()
                logger.debug("dataset_lease_released", dataset_id=dataset_id)
        finally:
            self._users[dataset_id] -= 1
            if not self._users[dataset_id]:
                del self._users[dataset_id]
                del self._locks[dataset_id]
