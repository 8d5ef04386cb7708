import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError
from feedgen.models.schemas import (
    AssemblyStats,
    FeedRun,
    HistoryEntry,
    Platform,
    RunOutcome,
    RunStatus,
)
from feedgen.pipeline.lifecycle import (
    KeyedLockRegistry,
    append_history,
    capture_error,
)
from feedgen.utils.errors import InvalidTransitionError


@pytest.fixture
def pending(tracker, options):
    return tracker.create("b1", "Main", "b1_1.xml", Platform.FACEBOOK, options)


def test_create_is_pending(pending, clock):
    assert pending.status == RunStatus.PENDING
    assert pending.platform == "facebook"
    assert pending.created_at == clock.now
    assert pending.history == ()
    assert pending.version == 0


def test_start_stamps_started_at(tracker, pending, clock):
    started = tracker.start(pending)
    assert started.status == RunStatus.PROCESSING
    assert started.last_run.started_at == clock.now
    assert pending.status == RunStatus.PENDING


def test_succeed_records_counts_and_duration(tracker, pending, clock):
    started = tracker.start(pending)
    clock.advance(seconds=2, milliseconds=500)
    stats = AssemblyStats(product_count=3, variant_count=5, item_count=5, skipped_count=1)

    done = tracker.succeed(started, stats, file_size=1234, file_url="https://cdn/b1_1.xml")

    assert done.status == RunStatus.COMPLETED
    assert done.product_count == 3
    assert done.variant_count == 5
    assert done.file_size == 1234
    assert done.file_url == "https://cdn/b1_1.xml"
    assert done.last_run.duration_ms == 2500
    assert done.last_run.status == RunOutcome.SUCCESS
    assert done.last_run.error is None
    assert len(done.history) == 1
    assert done.history[0].product_count == 3
    assert done.history[0].status == RunOutcome.SUCCESS


def test_fail_captures_message_and_stack(tracker, pending, clock):
    started = tracker.start(pending)
    clock.advance(seconds=1)
    try:
        raise RuntimeError("bucket unreachable")
    except RuntimeError as e:
        failed = tracker.fail(started, e)

    assert failed.status == RunStatus.FAILED
    assert failed.last_run.status == RunOutcome.FAILED
    assert failed.last_run.duration_ms == 1000
    assert failed.last_run.error.message == "bucket unreachable"
    assert "RuntimeError: bucket unreachable" in failed.last_run.error.stack
    assert "Traceback" in failed.last_run.error.stack
    entry = failed.history[-1]
    assert entry.status == RunOutcome.FAILED
    assert entry.product_count is None
    assert entry.error_message == "bucket unreachable"


def test_fail_keeps_previous_counts(tracker, pending):
    done = tracker.succeed(tracker.start(pending), AssemblyStats(product_count=4), 10, "u")
    failed = tracker.fail(tracker.start(done), ValueError("boom"))
    assert failed.product_count == 4
    assert failed.file_url == "u"


def test_error_without_message_uses_class_name():
    assert capture_error(KeyError()).message == "KeyError"


def test_two_successful_runs_history(tracker, pending, clock):
    run = tracker.start(pending)
    clock.advance(seconds=1)
    run = tracker.succeed(run, AssemblyStats(product_count=1), 1, "u")
    clock.advance(minutes=5)
    run = tracker.start(run)
    clock.advance(seconds=3)
    run = tracker.succeed(run, AssemblyStats(product_count=2), 1, "u")

    assert len(run.history) == 2
    for entry in run.history:
        expected = int((entry.finished_at - entry.started_at).total_seconds() * 1000)
        assert entry.duration_ms == expected
    assert [e.duration_ms for e in run.history] == [1000, 3000]


def test_history_capped_fifo(tracker, pending, clock):
    run = pending
    for count in range(12):
        run = tracker.start(run)
        clock.advance(seconds=1)
        run = tracker.succeed(run, AssemblyStats(product_count=count), 1, "u")

    assert len(run.history) == 10
    assert [e.product_count for e in run.history] == list(range(2, 12))


def test_append_history_truncates_from_front(clock):
    entries = tuple(
        HistoryEntry(started_at=clock.now, finished_at=clock.now, duration_ms=i, status="success")
        for i in range(3)
    )
    new = HistoryEntry(started_at=clock.now, finished_at=clock.now, duration_ms=99, status="failed")
    result = append_history(entries, new, limit=3)
    assert [e.duration_ms for e in result] == [1, 2, 99]
    assert len(entries) == 3


def test_model_rejects_oversized_history(clock):
    entries = [
        HistoryEntry(started_at=clock.now, finished_at=clock.now, duration_ms=0, status="success")
    ] * 11
    with pytest.raises(PydanticValidationError):
        FeedRun(business_id="b", name="n", file_key="k", platform="facebook", history=entries)


@pytest.mark.parametrize("transition", ["succeed", "fail"])
def test_invalid_transitions_from_pending(tracker, pending, transition):
    with pytest.raises(InvalidTransitionError):
        if transition == "succeed":
            tracker.succeed(pending, AssemblyStats(), 0, None)
        else:
            tracker.fail(pending, RuntimeError("x"))


def test_cannot_start_processing_run(tracker, pending):
    with pytest.raises(InvalidTransitionError) as exc:
        tracker.start(tracker.start(pending))
    assert exc.value.details == {"current": "processing", "target": "processing"}


def test_cannot_complete_twice(tracker, pending):
    done = tracker.succeed(tracker.start(pending), AssemblyStats(), 0, None)
    with pytest.raises(InvalidTransitionError):
        tracker.succeed(done, AssemblyStats(), 0, None)


def test_start_with_new_options(tracker, pending, options):
    new_options = options.model_copy(update={"currency_code": "USD"})
    started = tracker.start(pending, new_options)
    assert started.options.currency_code == "USD"


def test_is_stale(tracker, pending, clock):
    started = tracker.start(pending)
    assert not tracker.is_stale(pending, 60)
    assert not tracker.is_stale(started, 60)
    clock.advance(seconds=61)
    assert tracker.is_stale(started, 60)


@pytest.mark.asyncio
async def test_keyed_locks_serialize_same_key():
    locks = KeyedLockRegistry()
    order = []

    async def worker(name, key, delay):
        async with locks.lock(key):
            order.append(f"{name}-in")
            await asyncio.sleep(delay)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a", "k1", 0.02), worker("b", "k1", 0))
    assert order == ["a-in", "a-out", "b-in", "b-out"]


@pytest.mark.asyncio
async def test_keyed_locks_independent_keys():
    locks = KeyedLockRegistry()
    async with locks.lock("k1"):
        assert locks.locked("k1")
        assert not locks.locked("k2")
        async with locks.lock("k2"):
            assert locks.locked("k2")
    assert not locks.locked("k1")
