"""
Feed record stores.

Every save is a compare-and-swap on `FeedRun.version`: the write only lands
if the stored version still equals the version the caller read, and the
stored copy then carries version + 1. Two processes racing on the same file
key therefore cannot both win.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from feedgen.models.schemas import FeedRun, RunStatus, utcnow
from feedgen.storage.database import FeedRunRow, create_session_factory
from feedgen.utils.errors import ConcurrentUpdateError, RecordExistsError, RecordNotFoundError
from feedgen.utils.logger import get_logger

logger = get_logger(__name__)


def _next_version(run: FeedRun) -> FeedRun:
    return run.model_copy(update={"version": run.version + 1, "updated_at": utcnow()})


class FeedRecordStore(ABC):
    """Abstract interface for feed record persistence."""

    @abstractmethod
    async def create(self, run: FeedRun) -> FeedRun:
        """
        Insert a new record.

        Raises:
            RecordExistsError: A record with the same file key exists.
        """
        pass

    @abstractmethod
    async def find(self, file_key: str) -> Optional[FeedRun]:
        pass

    async def find_for_business(self, business_id: str, file_key: str) -> Optional[FeedRun]:
        """Record for the key, only if it belongs to the business."""
        run = await self.find(file_key)
        if run is None or run.business_id != business_id:
            return None
        return run

    @abstractmethod
    async def save(self, run: FeedRun) -> FeedRun:
        """
        Persist a new value of an existing record.

        Returns:
            The stored value, with its version advanced.

        Raises:
            ConcurrentUpdateError: The stored version no longer matches `run.version`.
            RecordNotFoundError: The record was deleted meanwhile.
        """
        pass

    @abstractmethod
    async def delete(self, business_id: str, file_key: str) -> bool:
        """Remove a record. Returns False when there was nothing to remove."""
        pass

    @abstractmethod
    async def list_by_status(self, status: RunStatus) -> list[FeedRun]:
        pass


# =============================================================================
# In-Memory
# =============================================================================

class InMemoryFeedRecordStore(FeedRecordStore):
    """In-memory record store for testing."""

    def __init__(self):
        self._records: dict[str, FeedRun] = {}
        self._lock = asyncio.Lock()

    async def create(self, run: FeedRun) -> FeedRun:
        async with self._lock:
            if run.file_key in self._records:
                raise RecordExistsError(run.file_key)
            self._records[run.file_key] = run
            return run

    async def find(self, file_key: str) -> Optional[FeedRun]:
        return self._records.get(file_key)

    async def save(self, run: FeedRun) -> FeedRun:
        async with self._lock:
            current = self._records.get(run.file_key)
            if current is None:
                raise RecordNotFoundError(run.business_id, run.file_key)
            if current.version != run.version:
                raise ConcurrentUpdateError(run.file_key, run.version)
            stored = _next_version(run)
            self._records[run.file_key] = stored
            return stored

    async def delete(self, business_id: str, file_key: str) -> bool:
        async with self._lock:
            current = self._records.get(file_key)
            if current is None or current.business_id != business_id:
                return False
            del self._records[file_key]
            return True

    async def list_by_status(self, status: RunStatus) -> list[FeedRun]:
        return [r for r in self._records.values() if r.status == RunStatus(status)]


# =============================================================================
# SQL
# =============================================================================

class SqlFeedRecordStore(FeedRecordStore):
    """Record store backed by the `feed_runs` table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = create_session_factory(engine)

    @staticmethod
    def _to_run(row: FeedRunRow) -> FeedRun:
        return FeedRun.model_validate({**row.payload, "version": row.version})

    async def create(self, run: FeedRun) -> FeedRun:
        await asyncio.to_thread(self._insert, run)
        return run

    def _insert(self, run: FeedRun) -> None:
        try:
            with self._sessions.begin() as session:
                session.add(FeedRunRow(
                    business_id=run.business_id,
                    file_key=run.file_key,
                    status=str(RunStatus(run.status).value),
                    version=run.version,
                    payload=run.model_dump(mode="json"),
                ))
        except IntegrityError as e:
            raise RecordExistsError(run.file_key) from e

    async def find(self, file_key: str) -> Optional[FeedRun]:
        return await asyncio.to_thread(self._select, file_key)

    def _select(self, file_key: str) -> Optional[FeedRun]:
        with self._sessions() as session:
            row = session.scalars(select(FeedRunRow).where(FeedRunRow.file_key == file_key)).first()
            return self._to_run(row) if row is not None else None

    async def save(self, run: FeedRun) -> FeedRun:
        return await asyncio.to_thread(self._compare_and_swap, run)

    def _compare_and_swap(self, run: FeedRun) -> FeedRun:
        stored = _next_version(run)
        stmt = (
            update(FeedRunRow)
            .where(FeedRunRow.file_key == run.file_key)
            .where(FeedRunRow.version == run.version)
            .values(
                status=str(RunStatus(stored.status).value),
                version=stored.version,
                payload=stored.model_dump(mode="json"),
            )
        )
        with self._sessions.begin() as session:
            result = session.execute(stmt)
            if result.rowcount == 1:
                return stored
            exists = session.scalars(
                select(FeedRunRow.id).where(FeedRunRow.file_key == run.file_key)
            ).first()

        if exists is None:
            raise RecordNotFoundError(run.business_id, run.file_key)
        logger.warning("Feed record version conflict", file_key=run.file_key, version=run.version)
        raise ConcurrentUpdateError(run.file_key, run.version)

    async def delete(self, business_id: str, file_key: str) -> bool:
        return await asyncio.to_thread(self._delete, business_id, file_key)

    def _delete(self, business_id: str, file_key: str) -> bool:
        stmt = (
            delete(FeedRunRow)
            .where(FeedRunRow.business_id == business_id)
            .where(FeedRunRow.file_key == file_key)
        )
        with self._sessions.begin() as session:
            return session.execute(stmt).rowcount > 0

    async def list_by_status(self, status: RunStatus) -> list[FeedRun]:
        return await asyncio.to_thread(self._select_status, RunStatus(status))

    def _select_status(self, status: RunStatus) -> list[FeedRun]:
        stmt = select(FeedRunRow).where(FeedRunRow.status == status.value).order_by(FeedRunRow.id)
        with self._sessions() as session:
            return [self._to_run(row) for row in session.scalars(stmt)]
