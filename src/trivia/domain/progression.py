import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from pydantic import StrictInt, TypeAdapter, ValidationError

from src.config import GameConfig, StorageKeys
from src.trivia.domain import ranks
from src.trivia.domain.models import HISTORY_ADAPTER, FanRank, HistoryEntry, SessionMode
from src.trivia.domain.ports import IKeyValueStore
from src.trivia.domain.sampler import utc_today
from src.shared.telemetry import Telemetry, measure_time_async
from src.shared.write_queue import PersistenceQueue


# Category name -> best earned points. Strict: "5" or 5.0 means the file is corrupt.
BEST_SCORES_ADAPTER: TypeAdapter[dict[str, int]] = TypeAdapter(dict[str, StrictInt])


@dataclass(frozen=True)
class HistoryStats:
    total_games: int
    best_percent: int
    average_percent: int


class ProgressionStore:
    """
    Cross-session progress: best scores, daily gate, fan points, history.

    Every mutation updates memory first, then queues a write-through to the
    key/value store. Readers never wait on I/O after load().
    """

    def __init__(
        self,
        store: IKeyValueStore,
        writer: PersistenceQueue,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.store = store
        self.writer = writer
        self.today = today
        self.telemetry = Telemetry("ProgressionStore")

        self._best_scores: dict[str, int] = {}
        self._daily_completed: str | None = None
        self._fan_points = 0
        self._history: list[HistoryEntry] = []

    # --- Loading ---

    @measure_time_async("progression_load")
    async def load(self) -> None:
        raw_scores, raw_daily, raw_points, raw_history = await asyncio.gather(
            self._read(StorageKeys.BEST_SCORES),
            self._read(StorageKeys.DAILY),
            self._read(StorageKeys.FAN_POINTS),
            self._read(StorageKeys.HISTORY),
        )
        self._best_scores = self._parse_best_scores(raw_scores)
        self._daily_completed = self._parse_daily(raw_daily)
        self._fan_points = self._parse_fan_points(raw_points)
        self._history = self._parse_history(raw_history)

        self.telemetry.log_info(
            "Progression Loaded",
            best_scores=len(self._best_scores),
            daily_completed=self._daily_completed,
            fan_points=self._fan_points,
            history=len(self._history),
        )

    async def _read(self, key: str) -> str | None:
        try:
            return await self.store.get(key)
        except Exception as e:
            self.telemetry.log_error("Read failed, using default", e, key=key)
            return None

    def _parse_best_scores(self, raw: str | None) -> dict[str, int]:
        if not raw:
            return {}
        try:
            return BEST_SCORES_ADAPTER.validate_json(raw)
        except ValidationError as e:
            self.telemetry.log_error("Corrupt best scores, using default", e)
            return {}

    def _parse_daily(self, raw: str | None) -> str | None:
        if not raw:
            return None
        try:
            return date.fromisoformat(raw.strip()).isoformat()
        except ValueError as e:
            self.telemetry.log_error("Corrupt daily marker, using default", e)
            return None

    def _parse_fan_points(self, raw: str | None) -> int:
        if not raw:
            return 0
        try:
            points = int(raw.strip())
        except ValueError as e:
            self.telemetry.log_error("Corrupt fan points, using default", e)
            return 0
        return max(points, 0)

    def _parse_history(self, raw: str | None) -> list[HistoryEntry]:
        if not raw:
            return []
        try:
            return HISTORY_ADAPTER.validate_json(raw)[: GameConfig.HISTORY_LIMIT]
        except ValidationError as e:
            self.telemetry.log_error("Corrupt history, using default", e)
            return []

    # --- Writing ---

    def _persist(self, key: str, value: str) -> None:
        self.writer.submit("set", key, lambda: self.store.set(key, value))

    def _persist_remove(self, key: str) -> None:
        self.writer.submit("remove", key, lambda: self.store.remove(key))

    async def flush(self) -> None:
        """Waits for queued writes. Only needed at shutdown or in tests."""
        await self.writer.drain()

    # --- Best scores ---

    @property
    def best_scores(self) -> dict[str, int]:
        return dict(self._best_scores)

    def best_score(self, key: str) -> int | None:
        return self._best_scores.get(key)

    def update_best_score(self, key: str, score: int) -> bool:
        """Stores `score` only when it beats the current best. Returns True if it did."""
        if score <= self._best_scores.get(key, 0):
            return False

        self._best_scores[key] = score
        payload = BEST_SCORES_ADAPTER.dump_json(self._best_scores).decode()
        self._persist(StorageKeys.BEST_SCORES, payload)
        self.telemetry.log_info("New Best Score", key=key, score=score)
        return True

    # --- Daily gate ---

    @property
    def daily_completed_on(self) -> str | None:
        return self._daily_completed

    def complete_daily(self) -> None:
        today = self.today().isoformat()
        self._daily_completed = today
        self._persist(StorageKeys.DAILY, today)

    def is_daily_completed(self) -> bool:
        return self._daily_completed == self.today().isoformat()

    # --- Fan points & ranks ---

    @property
    def fan_points(self) -> int:
        return self._fan_points

    def add_fan_points(self, amount: int) -> int:
        if amount < 0:
            raise ValueError(f"Fan points only grow, got {amount}")

        self._fan_points += amount
        self._persist(StorageKeys.FAN_POINTS, str(self._fan_points))
        return self._fan_points

    def get_current_rank(self) -> FanRank:
        return ranks.get_current_rank(self._fan_points)

    def get_next_rank(self) -> FanRank | None:
        return ranks.get_next_rank(self._fan_points)

    def get_points_to_next_rank(self) -> int:
        return ranks.get_points_to_next_rank(self._fan_points)

    def get_progress_percent(self) -> int:
        return ranks.get_progress_percent(self._fan_points)

    # --- History ---

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._history)

    def record_history(self, entry: HistoryEntry) -> None:
        self._history = [entry, *self._history][: GameConfig.HISTORY_LIMIT]
        payload = HISTORY_ADAPTER.dump_json(self._history, by_alias=True).decode()
        self._persist(StorageKeys.HISTORY, payload)

    def get_history_entry(self, entry_id: str) -> HistoryEntry | None:
        return next((e for e in self._history if e.id == entry_id), None)

    def filter_history(self, mode: SessionMode | None = None) -> list[HistoryEntry]:
        if mode is None:
            return list(self._history)
        return [e for e in self._history if e.quiz_type == mode.value]

    def history_stats(self) -> HistoryStats:
        if not self._history:
            return HistoryStats(total_games=0, best_percent=0, average_percent=0)

        percents = [e.percent for e in self._history]
        average = sum(percents) / len(percents)
        return HistoryStats(
            total_games=len(percents),
            best_percent=max(percents),
            average_percent=int(average + 0.5),
        )

    # --- Reset ---

    async def clear_all_progress(self) -> None:
        self._best_scores = {}
        self._daily_completed = None
        self._fan_points = 0
        self._history = []
        for key in StorageKeys.PROGRESSION:
            self._persist_remove(key)
        await self.flush()
        self.telemetry.log_info("Progress Cleared")
