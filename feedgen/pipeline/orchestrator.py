"""
Feed generation orchestrator.

Coordinates one generation run from claim to terminal state:

    lock(file key) -> claim (pending|completed|failed -> processing)
        -> assembler lookup -> catalog read -> assembly -> serialization
        -> blob write -> succeed, or fail on any error (error re-raised)

Features:
    - Per-key asyncio locks queue same-key runs inside one process
    - Version-checked record writes reject concurrent runs across processes
    - Deadline on the produce phase (catalog read through blob write)
    - Reconciliation of runs abandoned in processing
    - Structured logging with run context
"""

import asyncio
from typing import Optional

from feedgen.config.settings import Settings, get_settings
from feedgen.feeds.assembler import get_assembler
from feedgen.models.schemas import (
    AssemblyStats,
    ExclusionResult,
    FeedOptions,
    FeedRun,
    GenerationResult,
    Platform,
    RunStatus,
)
from feedgen.pipeline.lifecycle import KeyedLockRegistry, LifecycleTracker
from feedgen.storage.artifact_store import XML_CONTENT_TYPE, ArtifactStore, R2ArtifactStore
from feedgen.storage.catalog import CatalogStore, SqlCatalogStore
from feedgen.storage.database import create_db_engine, init_db
from feedgen.storage.records import FeedRecordStore, SqlFeedRecordStore
from feedgen.utils.errors import (
    CatalogReadError,
    ConcurrentUpdateError,
    FeedError,
    RecordExistsError,
    RecordNotFoundError,
    RunAbandonedError,
    RunInProgressError,
    RunTimeoutError,
    UnsupportedPlatformError,
)
from feedgen.utils.logger import LogContext, get_logger

logger = get_logger(__name__)


def default_file_key(business_id: str, epoch_ms: int) -> str:
    return f"{business_id}_{epoch_ms}.xml"


class FeedGenerationService:
    """
    Entry point for generating, regenerating and removing feeds.

    Example:
        >>> async with FeedGenerationService(catalog, records, artifacts) as service:
        ...     result = await service.generate("b1", "Main feed", "facebook",
        ...                                     FeedOptions(primary_domain="shop.com"))
        ...     print(result.file_url)
    """

    def __init__(
        self,
        catalog: CatalogStore,
        records: FeedRecordStore,
        artifacts: ArtifactStore,
        settings: Optional[Settings] = None,
        tracker: Optional[LifecycleTracker] = None,
        locks: Optional[KeyedLockRegistry] = None,
        run_timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the service.

        Args:
            catalog: Catalog read access
            records: Feed record persistence
            artifacts: Blob storage for serialized feeds
            settings: Application settings (uses defaults if not provided)
            tracker: Lifecycle state machine (injectable clock for tests)
            locks: Per-key lock registry shared by services of one process
            run_timeout_seconds: Deadline override for the produce phase
        """
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.records = records
        self.artifacts = artifacts
        self.tracker = tracker or LifecycleTracker()
        self.locks = locks or KeyedLockRegistry()
        self.run_timeout_seconds = run_timeout_seconds or self.settings.run_timeout_seconds

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    # -------------------------------------------------------------------------
    # Caller operations
    # -------------------------------------------------------------------------

    async def generate(
        self,
        business_id: str,
        name: str,
        platform: Platform | str,
        options: Optional[FeedOptions] = None,
        file_key: Optional[str] = None,
    ) -> GenerationResult:
        """
        Create (or reuse) the record for a feed and run a generation.

        Args:
            business_id: Owner of the catalog
            name: Human-readable feed name
            platform: Target advertising platform
            options: Generation options; unset fields take the settings defaults
            file_key: Blob key; defaults to "{business_id}_{epoch_ms}.xml"

        Returns:
            GenerationResult of the completed run

        Raises:
            UnsupportedPlatformError: Unknown platform, or one without an assembler
            RecordExistsError: The key belongs to another business
            RunInProgressError / ConcurrentUpdateError: Another run holds the key
            FeedError: Any failure of the run itself, after it is recorded
        """
        try:
            platform = Platform(platform)
        except ValueError:
            raise UnsupportedPlatformError(str(platform))

        options = self.settings.default_feed_options().merged_with(options)
        file_key = file_key or default_file_key(
            business_id, int(self.tracker.clock().timestamp() * 1000)
        )

        with LogContext(business_id=business_id, file_key=file_key, platform=platform.value):
            async with self.locks.lock(file_key):
                run = await self._find_or_create(business_id, name, platform, file_key, options)
                return await self._execute(run, options)

    async def update(
        self,
        business_id: str,
        file_key: str,
        options: Optional[FeedOptions] = None,
    ) -> GenerationResult:
        """
        Regenerate an existing feed, merging new options over the saved ones.

        Raises:
            RecordNotFoundError: No record for this business and key
        """
        with LogContext(business_id=business_id, file_key=file_key):
            async with self.locks.lock(file_key):
                run = await self.records.find_for_business(business_id, file_key)
                if run is None:
                    raise RecordNotFoundError(business_id, file_key)

                merged = run.options.merged_with(options)
                logger.info("Updating feed", platform=str(run.platform))
                return await self._execute(run, merged)

    async def exclude(self, business_id: str, file_key: str) -> ExclusionResult:
        """
        Remove a feed's blob, then its record.

        A missing blob or a missing record is reported, not raised. A real
        blob deletion failure raises before the record is touched.

        Raises:
            ArtifactDeleteError: The blob could not be removed
            RecordNotFoundError: The key belongs to another business
        """
        with LogContext(business_id=business_id, file_key=file_key):
            async with self.locks.lock(file_key):
                existing = await self.records.find(file_key)
                if existing is not None and existing.business_id != business_id:
                    raise RecordNotFoundError(business_id, file_key)

                await self.artifacts.delete(file_key)
                record_deleted = await self.records.delete(business_id, file_key)

                logger.info("Feed excluded", record_deleted=record_deleted)
                return ExclusionResult(
                    business_id=business_id,
                    file_key=file_key,
                    file_deleted=True,
                    record_deleted=record_deleted,
                )

    async def reconcile_stale_runs(self) -> list[FeedRun]:
        """
        Fail every record left in processing past the run deadline.

        Records whose key is being run by this process, or that another
        writer moved meanwhile, are left alone.

        Returns:
            The failed records as stored
        """
        reconciled: list[FeedRun] = []
        for run in await self.records.list_by_status(RunStatus.PROCESSING):
            if not self.tracker.is_stale(run, self.run_timeout_seconds):
                continue
            if self.locks.locked(run.file_key):
                continue

            async with self.locks.lock(run.file_key):
                try:
                    reconciled.append(await self._abandon(run))
                except (ConcurrentUpdateError, RecordNotFoundError) as e:
                    logger.info("Stale run moved before reconciliation", file_key=run.file_key, error=str(e))

        logger.info("Stale runs reconciled", count=len(reconciled))
        return reconciled

    async def close(self) -> None:
        """Close storage connections."""
        await self.artifacts.close()

    # -------------------------------------------------------------------------
    # Run execution
    # -------------------------------------------------------------------------

    async def _find_or_create(
        self,
        business_id: str,
        name: str,
        platform: Platform,
        file_key: str,
        options: FeedOptions,
    ) -> FeedRun:
        existing = await self.records.find(file_key)
        if existing is None:
            run = self.tracker.create(business_id, name, file_key, platform, options)
            try:
                return await self.records.create(run)
            except RecordExistsError:
                existing = await self.records.find(file_key)
                if existing is None:
                    raise

        if existing.business_id != business_id:
            raise RecordExistsError(file_key)
        return existing.model_copy(update={"name": name, "platform": platform.value})

    async def _claim(self, run: FeedRun, options: FeedOptions) -> FeedRun:
        if RunStatus(run.status) == RunStatus.PROCESSING:
            if not self.tracker.is_stale(run, self.run_timeout_seconds):
                raise RunInProgressError(run.file_key)
            run = await self._abandon(run)

        return await self.records.save(self.tracker.start(run, options))

    async def _abandon(self, run: FeedRun) -> FeedRun:
        error = RunAbandonedError(run.file_key, self.run_timeout_seconds)
        logger.warning("Abandoned run found", file_key=run.file_key)
        return await self.records.save(self.tracker.fail(run, error))

    async def _execute(self, run: FeedRun, options: FeedOptions) -> GenerationResult:
        claimed = await self._claim(run, options)
        logger.info("Feed run started", version=claimed.version)

        try:
            stats, file_size, file_url = await asyncio.wait_for(
                self._produce(claimed),
                timeout=self.run_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            error = RunTimeoutError(claimed.file_key, self.run_timeout_seconds)
            error.__cause__ = e
            await self._record_failure(claimed, error)
            raise error from e
        except Exception as e:
            await self._record_failure(claimed, e)
            raise

        try:
            completed = await self.records.save(
                self.tracker.succeed(claimed, stats, file_size, file_url)
            )
        except ConcurrentUpdateError:
            raise
        except Exception as e:
            await self._record_failure(claimed, e)
            raise

        logger.info(
            "Feed run completed",
            product_count=stats.product_count,
            variant_count=stats.variant_count,
            skipped_count=stats.skipped_count,
            file_size=file_size,
            duration_ms=completed.last_run.duration_ms,
        )

        return GenerationResult(
            business_id=completed.business_id,
            file_key=completed.file_key,
            feed_name=completed.name,
            platform=completed.platform,
            product_count=stats.product_count,
            variant_count=stats.variant_count,
            item_count=stats.item_count,
            skipped_count=stats.skipped_count,
            file_size=file_size,
            file_url=file_url,
            duration_ms=completed.last_run.duration_ms,
        )

    async def _produce(self, run: FeedRun) -> tuple[AssemblyStats, int, str]:
        assembler = get_assembler(run.platform)

        try:
            products = await self.catalog.list_active_products(run.business_id)
        except FeedError:
            raise
        except Exception as e:
            raise CatalogReadError(
                f"Failed to read catalog for business '{run.business_id}': {e}",
                details={"business_id": run.business_id},
            ) from e

        document = assembler.assemble(products, run.options)
        data = document.serialize()

        file_size = await self.artifacts.put(run.file_key, data, XML_CONTENT_TYPE)
        return document.stats, file_size, self.artifacts.public_url(run.file_key)

    async def _record_failure(self, run: FeedRun, error: BaseException) -> None:
        """Persist the fail transition; a write error here never replaces `error`."""
        logger.error("Feed run failed", error=str(error) or type(error).__name__)
        try:
            await self.records.save(self.tracker.fail(run, error))
        except Exception as save_error:
            logger.error(
                "Failed to record run failure",
                error=str(save_error) or type(save_error).__name__,
                exc_info=True,
            )


# =============================================================================
# Convenience Functions
# =============================================================================

def build_service(
    settings: Optional[Settings] = None,
    artifacts: Optional[ArtifactStore] = None,
) -> FeedGenerationService:
    """
    Wire the SQL stores and the R2 artifact store from settings.

    Raises:
        ValidationError: R2 storage is not configured and no store was given
    """
    settings = settings or get_settings()
    engine = create_db_engine(settings.database_url, echo=settings.debug)
    init_db(engine)

    return FeedGenerationService(
        catalog=SqlCatalogStore(engine),
        records=SqlFeedRecordStore(engine),
        artifacts=artifacts or R2ArtifactStore.from_settings(settings),
        settings=settings,
    )
