"""Bounded-concurrency runner for store operations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Type

from .errors import SyncError, TransientIOError

logger = logging.getLogger("assetwindow.sync.executor")

TaskFactory = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Per-task retry settings applied by the executor."""

    attempts: int = 1
    backoff_seconds: float = 0.0
    retry_on: Tuple[Type[BaseException], ...] = (TransientIOError, OSError)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("RetryPolicy.attempts must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("RetryPolicy.backoff_seconds must be >= 0")

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return attempt < self.attempts and isinstance(error, self.retry_on)

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * attempt


@dataclass
class TaskOutcome:
    """Result slot for one task, aligned with its input position."""

    index: int
    value: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class TaskBatchError(SyncError):
    """Raised when ``raise_on_error`` is set and at least one task failed."""

    def __init__(self, outcomes: List[TaskOutcome]):
        self.outcomes = list(outcomes)
        super().__init__(f"{len(self.failures)} of {len(self.outcomes)} tasks failed")

    @property
    def failures(self) -> List[TaskOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


class BoundedExecutor:
    """Run async units of work with at most ``limit`` in flight.

    A fixed pool of workers pulls ``(index, task)`` pairs from a queue and
    writes each outcome into the slot matching the task's input position, so
    results come back in input order whatever the completion order was.  A
    failing task never cancels its siblings.
    """

    def __init__(self, limit: int = 1, retry: Optional[RetryPolicy] = None):
        if limit < 1:
            raise ValueError(f"Concurrency limit must be >= 1 (got {limit})")
        self.limit = limit
        self.retry = retry or RetryPolicy()

    async def run(
        self,
        tasks: Sequence[TaskFactory],
        *,
        raise_on_error: bool = False,
    ) -> List[TaskOutcome]:
        outcomes: List[Optional[TaskOutcome]] = [None] * len(tasks)
        queue: asyncio.Queue = asyncio.Queue()
        for index, task in enumerate(tasks):
            queue.put_nowait((index, task))

        async def _worker() -> None:
            while True:
                try:
                    index, task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                outcomes[index] = await self._attempt(index, task)

        workers = [asyncio.create_task(_worker()) for _ in range(min(self.limit, len(tasks)))]
        if workers:
            await asyncio.gather(*workers)

        settled = [outcome for outcome in outcomes if outcome is not None]
        if raise_on_error and any(not outcome.ok for outcome in settled):
            raise TaskBatchError(outcomes=settled)
        return settled

    async def _attempt(self, index: int, task: TaskFactory) -> TaskOutcome:
        attempt = 0
        while True:
            attempt += 1
            try:
                value = await task()
            except Exception as exc:
                if not self.retry.should_retry(exc, attempt):
                    logger.debug("Task %d failed after %d attempt(s): %s", index, attempt, exc)
                    return TaskOutcome(index=index, error=exc, attempts=attempt)
                delay = self.retry.delay_for(attempt)
                logger.debug("Task %d attempt %d failed (%s); retrying in %.2fs", index, attempt, exc, delay)
                if delay:
                    await asyncio.sleep(delay)
                continue
            return TaskOutcome(index=index, value=value, attempts=attempt)


async def run_bounded(
    tasks: Sequence[TaskFactory],
    limit: int = 1,
    *,
    raise_on_error: bool = False,
    retry: Optional[RetryPolicy] = None,
) -> List[TaskOutcome]:
    """Shorthand for ``BoundedExecutor(limit, retry).run(tasks)``."""
    executor = BoundedExecutor(limit, retry)
    return await executor.run(tasks, raise_on_error=raise_on_error)


__all__ = [
    "BoundedExecutor",
    "RetryPolicy",
    "TaskBatchError",
    "TaskFactory",
    "TaskOutcome",
    "run_bounded",
]
