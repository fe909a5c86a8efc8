import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from src.config import Category, GameConfig
from src.trivia.domain import ranks
from src.trivia.domain.models import (
    CategoryHistoryEntry,
    DailyHistoryEntry,
    FanRank,
    HistoryEntry,
    Question,
    RandomHistoryEntry,
    ResultLevel,
    SessionMode,
)
from src.trivia.domain.progression import ProgressionStore
from src.trivia.domain.sampler import QuestionSampler
from src.trivia.domain.session import QuizSession, SessionStatus
from src.trivia.domain.settings import SettingsStore
from src.shared.telemetry import Telemetry, measure_time


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- DTO for the result screen ---
@dataclass(frozen=True)
class SessionOutcome:
    earned_points: int
    total_points: int
    correct_count: int
    total_questions: int
    percent: int
    fan_points_earned: int
    fan_points_total: int
    previous_rank: FanRank
    current_rank: FanRank
    rank_up: bool
    new_best: bool
    result_level: ResultLevel
    entry: HistoryEntry


class QuizService:
    """
    Use cases around one active QuizSession.
    The only place where a finished session turns into persisted progress.
    """

    def __init__(
        self,
        sampler: QuestionSampler,
        progression: ProgressionStore,
        settings: SettingsStore,
        session: QuizSession | None = None,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.sampler = sampler
        self.progression = progression
        self.settings = settings
        self.session = session or QuizSession()
        self.now = now
        self.telemetry = Telemetry("QuizService")
        # Same logger, plus mode/category of the running session
        self.session_telemetry = self.telemetry
        self._last_entry_stamp = 0

    # --- Starting ---

    def _start(
        self,
        questions: Sequence[Question],
        mode: SessionMode,
        category: Category | None = None,
    ) -> QuizSession | None:
        if not questions:
            self.telemetry.log_info("No questions generated", mode=mode.value)
            return None

        self.telemetry.start_trace()
        self.session.start(questions, mode, category)
        self.session_telemetry = self.telemetry.bind(
            mode=mode.value, category=category.value if category else None
        )
        self.session_telemetry.log_info("Session Started", questions=len(questions))
        return self.session

    def _count(self, count: int | None) -> int:
        return self.settings.questions_per_quiz if count is None else count

    @measure_time("start_daily")
    def start_daily(self) -> QuizSession | None:
        """One attempt per day: returns None once today's challenge is done."""
        if self.progression.is_daily_completed():
            self.telemetry.log_info("Daily already completed today")
            return None
        questions = self.sampler.sample_daily(GameConfig.DAILY_QUESTIONS)
        return self._start(questions, SessionMode.DAILY)

    @measure_time("start_random")
    def start_random(
        self, count: int | None = None, fans_only: bool = False
    ) -> QuizSession | None:
        questions = self.sampler.sample_random(self._count(count), fans_only=fans_only)
        return self._start(questions, SessionMode.RANDOM)

    @measure_time("start_category")
    def start_category(
        self, category: Category, count: int | None = None, fans_only: bool = False
    ) -> QuizSession | None:
        questions = self.sampler.sample_random(
            self._count(count), category=category, fans_only=fans_only
        )
        return self._start(questions, SessionMode.CATEGORY, category)

    # --- Playing ---

    def submit_answer(self, question_id: str, selected: Sequence[int]) -> bool:
        is_correct = self.session.submit_answer(question_id, selected)
        self.session_telemetry.log_info(
            "Answer Submitted", q_id=question_id, selected=list(selected), correct=is_correct
        )
        return is_correct

    def next_question(self) -> None:
        self.session.advance()

    def abandon(self) -> None:
        """Back to menu: drops the session, progression is untouched."""
        if self.session.status == SessionStatus.IN_PROGRESS:
            self.session_telemetry.log_warning(
                "Session Abandoned",
                answered=len(self.session.answers),
                total=len(self.session.questions),
            )
        self.session.reset()

    # --- Finishing ---

    @measure_time("finish_quiz")
    def finish_quiz(self) -> SessionOutcome | None:
        session = self.session
        mode = session.mode
        if session.is_review or session.status != SessionStatus.IN_PROGRESS or mode is None:
            self.telemetry.log_info(
                "Finish ignored", status=session.status.name, review=session.is_review
            )
            return None

        session.finish()

        earned = session.earned_points
        best_key = self._best_score_key(session)
        new_best = best_key is not None and self.progression.update_best_score(
            best_key, earned
        )

        if mode == SessionMode.DAILY:
            self.progression.complete_daily()

        fan_earned = earned + (GameConfig.DAILY_BONUS if mode == SessionMode.DAILY else 0)
        points_before = self.progression.fan_points
        points_after = self.progression.add_fan_points(fan_earned)

        entry = self._build_history_entry(session)
        self.progression.record_history(entry)

        outcome = SessionOutcome(
            earned_points=earned,
            total_points=session.total_points,
            correct_count=session.correct_count,
            total_questions=len(session.questions),
            percent=session.percent,
            fan_points_earned=fan_earned,
            fan_points_total=points_after,
            previous_rank=ranks.get_current_rank(points_before),
            current_rank=ranks.get_current_rank(points_after),
            rank_up=ranks.is_rank_up(points_before, points_after),
            new_best=new_best,
            result_level=ranks.get_result_level(session.percent),
            entry=entry,
        )
        self.session_telemetry.log_info(
            "Session Finalized",
            earned=earned,
            best_key=best_key,
            fan_points=points_after,
            rank_up=outcome.rank_up,
        )
        return outcome

    @staticmethod
    def _best_score_key(session: QuizSession) -> str | None:
        """
        Best scores are kept per category. Daily and random sessions mix
        categories and count towards the category of their first question.
        """
        if session.category is not None:
            return session.category.value
        if session.questions:
            return session.questions[0].category.value
        return None

    def _next_entry_id(self) -> str:
        # Millisecond timestamp, bumped when two sessions end in the same ms
        stamp = time.time_ns() // 1_000_000
        self._last_entry_stamp = max(stamp, self._last_entry_stamp + 1)
        return str(self._last_entry_stamp)

    def _build_history_entry(self, session: QuizSession) -> HistoryEntry:
        fields = dict(
            id=self._next_entry_id(),
            percent=session.percent,
            earned_points=session.earned_points,
            total_points=session.total_points,
            correct_count=session.correct_count,
            total_questions=len(session.questions),
            completed_at=self.now(),
            questions=list(session.questions),
            answers={qid: list(sel) for qid, sel in session.answers.items()},
        )
        if session.mode == SessionMode.DAILY:
            return DailyHistoryEntry(**fields)
        if session.mode == SessionMode.CATEGORY:
            return CategoryHistoryEntry(category=session.category, **fields)
        return RandomHistoryEntry(**fields)

    # --- Review ---

    def open_review(self, entry_id: str) -> QuizSession | None:
        """Re-opens a past session read-only; no progression side effects."""
        entry = self.progression.get_history_entry(entry_id)
        if entry is None:
            self.telemetry.log_info("History entry not found", entry_id=entry_id)
            return None
        self.session = QuizSession.for_review(entry)
        return self.session
