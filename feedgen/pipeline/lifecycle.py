"""
Feed run lifecycle state machine.

A FeedRun moves through:

    pending -> processing -> completed | failed

`completed` and `failed` records may start again. Every transition returns
a new immutable FeedRun; nothing mutates a record in place.
"""

import asyncio
import traceback
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Optional

from feedgen.models.schemas import (
    HISTORY_LIMIT,
    AssemblyStats,
    FeedOptions,
    FeedRun,
    HistoryEntry,
    LastRun,
    Platform,
    RunError,
    RunOutcome,
    RunStatus,
    utcnow,
)
from feedgen.utils.errors import InvalidTransitionError

ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.PROCESSING}),
    RunStatus.PROCESSING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.COMPLETED: frozenset({RunStatus.PROCESSING}),
    RunStatus.FAILED: frozenset({RunStatus.PROCESSING}),
}


def append_history(
    history: tuple[HistoryEntry, ...],
    entry: HistoryEntry,
    limit: int = HISTORY_LIMIT,
) -> tuple[HistoryEntry, ...]:
    """Append an entry, then drop the oldest ones beyond `limit`."""
    return (*history, entry)[-limit:]


def capture_error(error: BaseException) -> RunError:
    """Message plus formatted traceback of a failure."""
    message = str(error) or type(error).__name__
    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return RunError(message=message, stack=stack)


def duration_ms(started_at: Optional[datetime], finished_at: datetime) -> int:
    if started_at is None:
        return 0
    return max(0, int((finished_at - started_at).total_seconds() * 1000))


class LifecycleTracker:
    """
    Produces the successive values of a FeedRun.

    Args:
        clock: Returns the current aware datetime (injectable for tests).
        history_limit: Entries kept in the bounded run history.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.clock = clock or utcnow
        self.history_limit = history_limit

    @staticmethod
    def _check(run: FeedRun, target: RunStatus) -> None:
        current = RunStatus(run.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, target.value)

    def create(
        self,
        business_id: str,
        name: str,
        file_key: str,
        platform: Platform | str,
        options: Optional[FeedOptions] = None,
    ) -> FeedRun:
        now = self.clock()
        return FeedRun(
            business_id=business_id,
            name=name,
            file_key=file_key,
            platform=platform,
            options=options or FeedOptions(),
            status=RunStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def start(self, run: FeedRun, options: Optional[FeedOptions] = None) -> FeedRun:
        """Claim the record for a new run, optionally with new options."""
        self._check(run, RunStatus.PROCESSING)
        update = {
            "status": RunStatus.PROCESSING.value,
            "last_run": LastRun(started_at=self.clock()),
        }
        if options is not None:
            update["options"] = options
        return run.model_copy(update=update)

    def succeed(
        self,
        run: FeedRun,
        stats: AssemblyStats,
        file_size: int,
        file_url: Optional[str],
    ) -> FeedRun:
        self._check(run, RunStatus.COMPLETED)
        started_at = run.last_run.started_at if run.last_run else None
        finished_at = self.clock()
        elapsed = duration_ms(started_at, finished_at)

        entry = HistoryEntry(
            started_at=started_at or finished_at,
            finished_at=finished_at,
            duration_ms=elapsed,
            status=RunOutcome.SUCCESS,
            product_count=stats.product_count,
        )
        return run.model_copy(update={
            "status": RunStatus.COMPLETED.value,
            "product_count": stats.product_count,
            "variant_count": stats.variant_count,
            "file_size": file_size,
            "file_url": file_url,
            "last_run": LastRun(
                started_at=started_at,
                finished_at=finished_at,
                duration_ms=elapsed,
                status=RunOutcome.SUCCESS,
            ),
            "history": append_history(run.history, entry, self.history_limit),
        })

    def fail(self, run: FeedRun, error: BaseException) -> FeedRun:
        self._check(run, RunStatus.FAILED)
        started_at = run.last_run.started_at if run.last_run else None
        finished_at = self.clock()
        elapsed = duration_ms(started_at, finished_at)
        captured = capture_error(error)

        entry = HistoryEntry(
            started_at=started_at or finished_at,
            finished_at=finished_at,
            duration_ms=elapsed,
            status=RunOutcome.FAILED,
            error_message=captured.message,
        )
        return run.model_copy(update={
            "status": RunStatus.FAILED.value,
            "last_run": LastRun(
                started_at=started_at,
                finished_at=finished_at,
                duration_ms=elapsed,
                status=RunOutcome.FAILED,
                error=captured,
            ),
            "history": append_history(run.history, entry, self.history_limit),
        })

    def is_stale(self, run: FeedRun, timeout_seconds: float) -> bool:
        """A processing record whose run started longer ago than the deadline."""
        if RunStatus(run.status) != RunStatus.PROCESSING:
            return False
        started_at = run.last_run.started_at if run.last_run else None
        if started_at is None:
            return True
        return self.clock() - started_at > timedelta(seconds=timeout_seconds)


class KeyedLockRegistry:
    """One asyncio.Lock per file key; same-key callers queue in arrival order."""

    def __init__(self):
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, key: str) -> asyncio.Lock:
        return self._locks[key]

    def locked(self, key: str) -> bool:
        return key in self._locks and self._locks[key].locked()
