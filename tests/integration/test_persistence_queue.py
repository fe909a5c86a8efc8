import asyncio
from datetime import date

import pytest
from prometheus_client import REGISTRY

from src.config import StorageKeys
from src.shared.write_queue import PersistenceQueue
from src.trivia.domain.progression import ProgressionStore
from tests.drivers.factories import SlowKeyValueStore


def failures(operation):
    value = REGISTRY.get_sample_value(
        "trivia_persistence_failures_total", {"operation": operation}
    )
    return value or 0.0


class TestPersistenceQueue:
    @pytest.mark.asyncio
    async def test_writes_apply_in_issue_order(self, writer):
        applied = []

        def make(i):
            async def action():
                await asyncio.sleep(0.001 * (5 - i))
                applied.append(i)

            return action

        for i in range(5):
            writer.submit("set", f"k{i}", make(i))
        await writer.drain()

        assert applied == [0, 1, 2, 3, 4]
        assert writer.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_counted_and_does_not_block_queue(self, writer):
        applied = []
        before = failures("test-fail")

        async def broken():
            raise OSError("disk full")

        async def ok():
            applied.append("ok")

        writer.submit("test-fail", "k", broken)
        writer.submit("set", "k", ok)
        await writer.drain()

        assert applied == ["ok"]
        assert failures("test-fail") == before + 1
        assert writer.is_running

    @pytest.mark.asyncio
    async def test_backlog_from_before_start_is_processed(self):
        queue = PersistenceQueue()
        applied = []

        async def action():
            applied.append(1)

        queue.submit("set", "k", action)
        queue.start()
        await queue.stop()

        assert applied == [1]
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_submit_starts_worker_lazily(self):
        queue = PersistenceQueue()
        done = asyncio.Event()

        async def action():
            done.set()

        queue.submit("set", "k", action)

        await asyncio.wait_for(done.wait(), timeout=1)
        await queue.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, writer):
        worker = writer._worker
        writer.start()
        assert writer._worker is worker

    @pytest.mark.asyncio
    async def test_drain_on_empty_queue_returns(self):
        queue = PersistenceQueue()
        await queue.drain()
        assert not queue.is_running


class TestInFlightWrites:
    @pytest.mark.asyncio
    async def test_flush_waits_for_write_already_taken_by_worker(self, writer):
        """
        GIVEN: A slow store and a write the worker has already dequeued
        WHEN: The progression is flushed
        THEN: flush() returns only after the write has landed
        """
        store = SlowKeyValueStore()
        progression = ProgressionStore(store, writer, today=lambda: date(2026, 3, 14))

        progression.add_fan_points(7)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert writer.pending == 0  # dequeued, still running

        await progression.flush()

        assert store.data[StorageKeys.FAN_POINTS] == "7"

    @pytest.mark.asyncio
    async def test_stop_does_not_cancel_running_write(self):
        queue = PersistenceQueue()
        queue.start()
        store = SlowKeyValueStore()

        queue.submit("set", "k", lambda: store.set("k", "v"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        await queue.stop()

        assert store.data == {"k": "v"}
