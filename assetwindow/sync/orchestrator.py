"""Publish orchestration: fetch log, reconcile, upload, delete, persist."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import (
    ConcurrentPublishError,
    DeleteFailure,
    LogCorruptError,
    SyncError,
    TransientIOError,
    UploadFailure,
)
from .executor import BoundedExecutor, RetryPolicy, TaskBatchError, TaskFactory
from .log import LogStore, ReconciliationLog, describe, utc_timestamp
from .reconcile import ReconciliationResult, reconcile
from .store import ObjectStore, Payload, build_store, join_key

logger = logging.getLogger("assetwindow.sync.orchestrator")

DELETE_CHUNK_SIZE = 100


class SyncState(str, Enum):
    """States a publish run moves through."""
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    UPLOADING = "uploading"
    DELETING = "deleting"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncOutcome:
    """Structured report of a publish run."""

    final_state: SyncState = SyncState.FETCHING
    states: List[SyncState] = field(default_factory=list)
    uploaded: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    skipped_deletes: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    log_status: str = "unknown"  # found, missing, corrupt, unreadable
    log_written: bool = False
    reconciliation: Optional[ReconciliationResult] = None
    error: Optional[SyncError] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.final_state is SyncState.DONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "final_state": self.final_state.value,
            "states": [state.value for state in self.states],
            "uploaded": self.uploaded,
            "deleted": self.deleted,
            "skipped_deletes": self.skipped_deletes,
            "failed": self.failed,
            "log_status": self.log_status,
            "log_written": self.log_written,
            "error": str(self.error) if self.error else None,
            "warnings": self.warnings,
        }


@dataclass(frozen=True)
class PublishPlan:
    """What a publish run would do, computed without touching the store."""

    log: ReconciliationLog
    log_status: str
    reconciliation: ReconciliationResult
    next_log: Optional[ReconciliationLog]


class Publisher:
    """Publishes a candidate generation and slides the retention window."""

    def __init__(
        self,
        store: ObjectStore,
        upload_path: str,
        concurrency: int = 1,
        retry: Optional[RetryPolicy] = None,
        strict_log_fetch: bool = False,
        detect_concurrent_publish: bool = True,
        clock: Callable[[], str] = utc_timestamp,
    ):
        self.store = store
        self.upload_path = upload_path
        self.log_store = LogStore(store, upload_path)
        self.executor = BoundedExecutor(concurrency, retry)
        self.strict_log_fetch = strict_log_fetch
        self.detect_concurrent_publish = detect_concurrent_publish
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Any, store: Optional[ObjectStore] = None) -> "Publisher":
        return cls(
            store=store or build_store(settings),
            upload_path=settings.upload_path,
            concurrency=settings.concurrency,
            retry=RetryPolicy(
                attempts=settings.retry_attempts,
                backoff_seconds=settings.retry_backoff,
            ),
            strict_log_fetch=settings.strict_log_fetch,
            detect_concurrent_publish=settings.detect_concurrent_publish,
        )

    def key_for(self, name: str) -> str:
        return join_key(self.upload_path, name)

    async def plan(self, candidate: Iterable[str]) -> PublishPlan:
        """Fetch the log and reconcile without uploading, deleting or persisting."""
        candidate_set = frozenset(candidate)
        log, status = await self._fetch_log()
        result = reconcile(log.previous, log.current, candidate_set)
        next_log = log.advance(candidate_set, self.clock()) if result.upload_set else None
        return PublishPlan(log=log, log_status=status, reconciliation=result, next_log=next_log)

    async def publish(self, artifacts: Mapping[str, Payload]) -> SyncOutcome:
        """Run one publish cycle for ``artifacts`` (name -> local path or bytes)."""

        outcome = SyncOutcome()
        candidate = frozenset(artifacts)
        try:
            self._enter(outcome, SyncState.FETCHING)
            log, outcome.log_status = await self._fetch_log()

            self._enter(outcome, SyncState.RECONCILING)
            result = reconcile(log.previous, log.current, candidate)
            outcome.reconciliation = result
            logger.info("Reconciled %d candidate file(s): %s", len(candidate), result.summary())

            self._enter(outcome, SyncState.UPLOADING)
            if not result.upload_set:
                logger.info("Nothing new to publish; leaving the reconciliation log untouched")
                self._enter(outcome, SyncState.DONE)
                return outcome
            await self._upload(result.uploads, artifacts, outcome)

            if result.delete_set:
                self._enter(outcome, SyncState.DELETING)
                # Another publisher's log may still reference these names.
                await self._guard_log(log, outcome.log_status)
                await self._delete(result.deletes, outcome)

            self._enter(outcome, SyncState.PERSISTING)
            await self._persist(log, outcome.log_status, candidate, outcome)
        except SyncError as exc:
            outcome.error = exc
            logger.error(
                "Publish failed during %s: %s",
                outcome.final_state.value,
                exc,
                extra={"state": outcome.final_state.value},
            )
            self._enter(outcome, SyncState.FAILED)
            return outcome

        self._enter(outcome, SyncState.DONE)
        logger.info(
            "Published %d file(s), deleted %d, skipped %d delete(s)",
            len(outcome.uploaded),
            len(outcome.deleted),
            len(outcome.skipped_deletes),
        )
        return outcome

    def _enter(self, outcome: SyncOutcome, state: SyncState) -> None:
        outcome.final_state = state
        outcome.states.append(state)
        logger.debug("Publish state -> %s", state.value, extra={"state": state.value})

    async def _fetch_log(self) -> Tuple[ReconciliationLog, str]:
        """Load the log, substituting an empty one when it cannot be used."""
        try:
            log = await asyncio.to_thread(self.log_store.fetch)
        except LogCorruptError as exc:
            logger.warning("Reconciliation log is corrupt (%s); treating it as empty", exc)
            return ReconciliationLog.empty(), "corrupt"
        except TransientIOError as exc:
            if self.strict_log_fetch:
                raise
            logger.warning("Could not read reconciliation log (%s); treating it as empty", exc)
            return ReconciliationLog.empty(), "unreadable"
        if log is None:
            return ReconciliationLog.empty(), "missing"
        return log, "found"

    async def _upload(
        self,
        names: Sequence[str],
        artifacts: Mapping[str, Payload],
        outcome: SyncOutcome,
    ) -> None:
        def _task(name: str) -> TaskFactory:
            async def _run() -> str:
                key = self.key_for(name)
                await asyncio.to_thread(self.store.put, key, artifacts[name])
                logger.info("[upload] %s", key, extra={"state": "uploading", "key": key})
                return key
            return _run

        try:
            results = await self.executor.run([_task(name) for name in names], raise_on_error=True)
        except TaskBatchError as exc:
            for result in exc.outcomes:
                name = names[result.index]
                if result.ok:
                    outcome.uploaded.append(name)
                    continue
                logger.error(
                    "[upload] %s failed after %d attempt(s): %s",
                    name,
                    result.attempts,
                    result.error,
                    extra={"state": "uploading", "key": self.key_for(name), "attempt": result.attempts},
                )
                outcome.failed.append(name)
            raise UploadFailure(
                f"{len(outcome.failed)} of {len(names)} upload(s) failed: {describe(outcome.failed)}",
                outcome.failed,
            ) from exc
        outcome.uploaded.extend(names[result.index] for result in results)

    async def _delete(self, names: Sequence[str], outcome: SyncOutcome) -> None:
        chunks = [list(names[i:i + DELETE_CHUNK_SIZE]) for i in range(0, len(names), DELETE_CHUNK_SIZE)]

        def _task(chunk: List[str]) -> TaskFactory:
            async def _run() -> List[str]:
                keys = {self.key_for(name): name for name in chunk}
                failed_keys = await asyncio.to_thread(self.store.batch_delete, list(keys))
                return [keys[key] for key in failed_keys if key in keys]
            return _run

        results = await self.executor.run([_task(chunk) for chunk in chunks])
        skipped: List[str] = []
        for chunk, result in zip(chunks, results):
            if not result.ok:
                logger.warning(
                    "[delete] batch of %d failed: %s",
                    len(chunk),
                    result.error,
                    extra={"state": "deleting", "count": len(chunk), "attempt": result.attempts},
                )
                skipped.extend(chunk)
                continue
            failed_names = set(result.value or [])
            skipped.extend(name for name in chunk if name in failed_names)
            outcome.deleted.extend(name for name in chunk if name not in failed_names)

        for name in outcome.deleted:
            key = self.key_for(name)
            logger.info("[delete] %s", key, extra={"state": "deleting", "key": key})
        if skipped:
            failure = DeleteFailure(
                f"{len(skipped)} old file(s) could not be deleted; they are left in the store "
                f"and no longer tracked: {describe(skipped)}",
                skipped,
            )
            outcome.skipped_deletes = failure.names
            outcome.warnings.append(str(failure))
            logger.warning("%s", failure)

    async def _persist(
        self,
        fetched: ReconciliationLog,
        fetched_status: str,
        candidate: Iterable[str],
        outcome: SyncOutcome,
    ) -> None:
        await self._guard_log(fetched, fetched_status)
        new_log = fetched.advance(candidate, self.clock())
        await asyncio.to_thread(self.log_store.write, new_log)
        outcome.log_written = True
        logger.info(
            "Reconciliation log advanced: previous=%d, current=%d",
            len(new_log.previous),
            len(new_log.current),
        )

    async def _guard_log(self, fetched: ReconciliationLog, fetched_status: str) -> None:
        if self.detect_concurrent_publish and fetched_status in {"found", "missing"}:
            await self._check_unchanged(fetched, fetched_status)

    async def _check_unchanged(self, fetched: ReconciliationLog, fetched_status: str) -> None:
        """Re-read the log and refuse to overwrite another publisher's record.

        This narrows the window for concurrent publishers; it does not close it.
        """
        try:
            latest = await asyncio.to_thread(self.log_store.fetch)
        except (TransientIOError, LogCorruptError) as exc:
            logger.warning("Could not re-read reconciliation log (%s); continuing without the check", exc)
            return
        expected = fetched if fetched_status == "found" else None
        if latest != expected:
            raise ConcurrentPublishError(
                "Reconciliation log changed during this run; another publish may be in progress"
            )


def run_publish(
    settings: Any,
    artifacts: Mapping[str, Payload],
    store: Optional[ObjectStore] = None,
) -> SyncOutcome:
    """Synchronous entry point used by the command layer."""
    publisher = Publisher.from_settings(settings, store=store)
    return asyncio.run(publisher.publish(artifacts))


def run_plan(
    settings: Any,
    candidate: Iterable[str],
    store: Optional[ObjectStore] = None,
) -> PublishPlan:
    publisher = Publisher.from_settings(settings, store=store)
    return asyncio.run(publisher.plan(candidate))


__all__ = [
    "DELETE_CHUNK_SIZE",
    "PublishPlan",
    "Publisher",
    "SyncOutcome",
    "SyncState",
    "run_plan",
    "run_publish",
]
