"""Optimistic local mutations with queued, retried persistence.

A session applies every mutation to its local deck right away and queues
the matching database write here. ``flush`` runs queued writes in order,
retrying transient failures. A ``StudyError`` such as a missing card fails
at once. A write that keeps failing is rolled back locally and kept in
``failed`` for the presentation layer to report.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from backend.config import settings
from backend.study.errors import StudyError

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[None]]
Rollback = Callable[[], None]


@dataclass
class PendingWrite:
    """A persistence call waiting to run, with a way to undo its local effect."""

    description: str
    operation: Operation
    rollback: Rollback | None = None
    attempts: int = 0
    error: str | None = None


class WriteQueue:
    """FIFO of pending writes for one study session."""

    def __init__(
        self,
        max_attempts: int = settings.write_max_attempts,
        wait_seconds: float = settings.write_retry_wait_seconds,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.wait_seconds = wait_seconds
        self.pending: deque[PendingWrite] = deque()
        self.failed: list[PendingWrite] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self.pending)

    def submit(
        self,
        description: str,
        operation: Operation,
        rollback: Rollback | None = None,
    ) -> PendingWrite:
        write = PendingWrite(description=description, operation=operation, rollback=rollback)
        self.pending.append(write)
        return write

    async def flush(self) -> list[PendingWrite]:
        """Run every queued write. Returns the writes that failed in this flush."""
        failed_now: list[PendingWrite] = []
        async with self._lock:
            while self.pending:
                write = self.pending.popleft()
                try:
                    await self._run(write)
                except Exception as exc:  # noqa: BLE001
                    write.error = str(exc) or exc.__class__.__name__
                    logger.error(
                        "Write '%s' failed after %d attempt(s): %s",
                        write.description,
                        write.attempts,
                        write.error,
                    )
                    if write.rollback is not None:
                        write.rollback()
                    self.failed.append(write)
                    failed_now.append(write)
        return failed_now

    async def _run(self, write: PendingWrite) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.wait_seconds, max=max(self.wait_seconds * 8, 0)),
            retry=retry_if_not_exception_type(StudyError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                write.attempts += 1
                await write.operation()
        logger.debug("Write '%s' succeeded (attempt %d)", write.description, write.attempts)

    def clear_failures(self) -> None:
        self.failed.clear()
