import json
from datetime import date, datetime, timedelta, timezone

import pytest

from src.config import Category, GameConfig, StorageKeys
from src.trivia.domain.models import (
    HISTORY_ADAPTER,
    CategoryHistoryEntry,
    DailyHistoryEntry,
    RandomHistoryEntry,
    SessionMode,
)
from src.trivia.domain.progression import ProgressionStore
from src.shared.write_queue import PersistenceQueue
from tests.drivers.factories import BrokenKeyValueStore, MemoryKeyValueStore, create_question


def make_entry(entry_id, percent=50, cls=RandomHistoryEntry, **extra):
    q = create_question(f"q-{entry_id}")
    return cls(
        id=str(entry_id),
        percent=percent,
        earned_points=1,
        total_points=2,
        correct_count=1,
        total_questions=2,
        completed_at=datetime(2026, 3, 14, tzinfo=timezone.utc),
        questions=[q],
        answers={q.id: [0]},
        **extra,
    )


class TestLoad:
    @pytest.mark.asyncio
    async def test_empty_store_gives_defaults(self, progression):
        assert progression.best_scores == {}
        assert progression.daily_completed_on is None
        assert progression.fan_points == 0
        assert progression.history == ()
        assert progression.get_current_rank().points == 0

    @pytest.mark.asyncio
    async def test_restores_persisted_state(self, writer, clock):
        history = HISTORY_ADAPTER.dump_json([make_entry(7)], by_alias=True).decode()
        store = MemoryKeyValueStore(
            {
                StorageKeys.BEST_SCORES: json.dumps({"actors": 12, "plot": 4}),
                StorageKeys.DAILY: "2026-03-14",
                StorageKeys.FAN_POINTS: "260",
                StorageKeys.HISTORY: history,
            }
        )
        progression = ProgressionStore(store, writer, today=clock)

        await progression.load()

        assert progression.best_scores == {"actors": 12, "plot": 4}
        assert progression.is_daily_completed() is True
        assert progression.fan_points == 260
        assert progression.get_current_rank().points == 250
        assert [e.id for e in progression.history] == ["7"]

    @pytest.mark.asyncio
    async def test_corrupt_values_fall_back_per_slice(self, writer, clock):
        """
        Scenario: Every stored value is garbage except the fan points.
        Expected: Load succeeds, bad slices use defaults, good slice survives.
        """
        store = MemoryKeyValueStore(
            {
                StorageKeys.BEST_SCORES: "{not json",
                StorageKeys.DAILY: "yesterday-ish",
                StorageKeys.FAN_POINTS: "42",
                StorageKeys.HISTORY: '[{"quizType": "daily", "id": 1}]',
            }
        )
        progression = ProgressionStore(store, writer, today=clock)

        await progression.load()

        assert progression.best_scores == {}
        assert progression.daily_completed_on is None
        assert progression.fan_points == 42
        assert progression.history == ()

    @pytest.mark.asyncio
    async def test_non_object_best_scores_is_ignored(self, writer, clock):
        store = MemoryKeyValueStore({StorageKeys.BEST_SCORES: "[1, 2]"})
        progression = ProgressionStore(store, writer, today=clock)

        await progression.load()

        assert progression.best_scores == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [StorageKeys.BEST_SCORES, StorageKeys.HISTORY])
    async def test_deeply_nested_json_does_not_crash_load(self, writer, clock, key):
        store = MemoryKeyValueStore({key: "[" * 100_000, StorageKeys.FAN_POINTS: "3"})
        progression = ProgressionStore(store, writer, today=clock)

        await progression.load()

        assert progression.best_scores == {}
        assert progression.history == ()
        assert progression.fan_points == 3

    @pytest.mark.asyncio
    async def test_non_integer_best_scores_are_corrupt(self, writer, clock):
        store = MemoryKeyValueStore({StorageKeys.BEST_SCORES: '{"plot": "5"}'})
        progression = ProgressionStore(store, writer, today=clock)

        await progression.load()

        assert progression.best_scores == {}

    @pytest.mark.asyncio
    async def test_failing_store_still_loads(self, writer, clock):
        progression = ProgressionStore(BrokenKeyValueStore(), writer, today=clock)

        await progression.load()

        assert progression.fan_points == 0
        assert progression.history == ()


class TestBestScores:
    @pytest.mark.asyncio
    async def test_only_improvements_are_kept(self, progression, memory_store):
        assert progression.update_best_score("quotes", 8) is True
        assert progression.update_best_score("quotes", 5) is False
        assert progression.update_best_score("quotes", 8) is False
        assert progression.update_best_score("quotes", 11) is True

        await progression.flush()

        assert progression.best_score("quotes") == 11
        assert json.loads(memory_store.data[StorageKeys.BEST_SCORES]) == {"quotes": 11}

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, progression):
        progression.update_best_score(Category.RELATIONSHIPS.value, 3)
        progression.update_best_score(Category.ACTORS.value, 9)

        assert progression.best_score("relationships") == 3
        assert progression.best_score("actors") == 9
        assert progression.best_score("plot") is None


class TestDailyGate:
    @pytest.mark.asyncio
    async def test_gate_closes_for_the_rest_of_the_day(self, progression, clock):
        assert progression.is_daily_completed() is False

        progression.complete_daily()

        assert progression.is_daily_completed() is True
        assert progression.daily_completed_on == "2026-03-14"

    @pytest.mark.asyncio
    async def test_gate_reopens_next_day(self, progression, clock):
        progression.complete_daily()

        clock.current = clock.current + timedelta(days=1)

        assert progression.is_daily_completed() is False

    @pytest.mark.asyncio
    async def test_marker_is_persisted_as_iso_date(self, progression, memory_store):
        progression.complete_daily()
        await progression.flush()

        assert memory_store.data[StorageKeys.DAILY] == "2026-03-14"


class TestFanPoints:
    @pytest.mark.asyncio
    async def test_points_accumulate(self, progression, memory_store):
        assert progression.add_fan_points(95) == 95
        assert progression.add_fan_points(15) == 110
        await progression.flush()

        assert memory_store.data[StorageKeys.FAN_POINTS] == "110"
        assert progression.get_current_rank().points == 100
        assert progression.get_next_rank().points == 250
        assert progression.get_points_to_next_rank() == 140
        assert progression.get_progress_percent() == 7

    @pytest.mark.asyncio
    async def test_zero_is_allowed(self, progression):
        assert progression.add_fan_points(0) == 0

    @pytest.mark.asyncio
    async def test_negative_amount_is_rejected(self, progression):
        with pytest.raises(ValueError):
            progression.add_fan_points(-1)
        assert progression.fan_points == 0


class TestHistory:
    @pytest.mark.asyncio
    async def test_newest_first(self, progression):
        progression.record_history(make_entry(1))
        progression.record_history(make_entry(2))

        assert [e.id for e in progression.history] == ["2", "1"]

    @pytest.mark.asyncio
    async def test_capped_at_limit(self, progression, memory_store):
        """
        GIVEN: HISTORY_LIMIT + 5 finished sessions
        WHEN: All are recorded
        THEN: Only the newest HISTORY_LIMIT survive, in memory and in storage
        """
        for i in range(GameConfig.HISTORY_LIMIT + 5):
            progression.record_history(make_entry(i))
        await progression.flush()

        ids = [e.id for e in progression.history]
        assert len(ids) == GameConfig.HISTORY_LIMIT
        assert ids[0] == str(GameConfig.HISTORY_LIMIT + 4)
        assert ids[-1] == "5"

        stored = HISTORY_ADAPTER.validate_json(memory_store.data[StorageKeys.HISTORY])
        assert len(stored) == GameConfig.HISTORY_LIMIT

    @pytest.mark.asyncio
    async def test_lookup_and_filter(self, progression):
        progression.record_history(make_entry(1, cls=DailyHistoryEntry))
        progression.record_history(
            make_entry(2, cls=CategoryHistoryEntry, category=Category.PLOT)
        )
        progression.record_history(make_entry(3))

        assert progression.get_history_entry("2").category == Category.PLOT
        assert progression.get_history_entry("missing") is None
        assert [e.id for e in progression.filter_history(SessionMode.DAILY)] == ["1"]
        assert [e.id for e in progression.filter_history(SessionMode.CATEGORY)] == ["2"]
        assert len(progression.filter_history()) == 3

    @pytest.mark.asyncio
    async def test_stats(self, progression):
        assert progression.history_stats().total_games == 0

        for i, percent in enumerate([40, 90, 55]):
            progression.record_history(make_entry(i, percent=percent))

        stats = progression.history_stats()
        assert stats.total_games == 3
        assert stats.best_percent == 90
        assert stats.average_percent == 62  # 61.67


class TestClearAll:
    @pytest.mark.asyncio
    async def test_wipes_memory_and_storage(self, progression, memory_store):
        progression.update_best_score("plot", 5)
        progression.complete_daily()
        progression.add_fan_points(300)
        progression.record_history(make_entry(1))
        await progression.flush()

        await progression.clear_all_progress()

        assert progression.fan_points == 0
        assert progression.best_scores == {}
        assert progression.is_daily_completed() is False
        assert progression.history == ()
        for key in StorageKeys.PROGRESSION:
            assert key not in memory_store.data

    @pytest.mark.asyncio
    async def test_settings_are_kept(self, progression, memory_store):
        memory_store.data[StorageKeys.SETTINGS] = '{"questionsPerQuiz": 15}'

        await progression.clear_all_progress()

        assert StorageKeys.SETTINGS in memory_store.data


class TestWriteFailures:
    @pytest.mark.asyncio
    async def test_failed_writes_keep_memory_state(self, writer, clock):
        progression = ProgressionStore(BrokenKeyValueStore(), writer, today=clock)
        await progression.load()

        progression.add_fan_points(20)
        progression.complete_daily()
        await progression.flush()

        assert progression.fan_points == 20
        assert progression.is_daily_completed() is True


def test_mutations_work_without_running_loop(memory_store):
    """Sync callers can mutate before the writer starts; writes wait in the queue."""
    writer = PersistenceQueue()
    progression = ProgressionStore(memory_store, writer, today=lambda: date(2026, 1, 1))

    progression.add_fan_points(10)

    assert progression.fan_points == 10
    assert writer.pending == 1
