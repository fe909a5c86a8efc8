import math
import random
from collections.abc import Callable, Sequence
from datetime import date, datetime, timezone
from typing import TypeVar

from src.config import Category, GameConfig
from src.trivia.domain.models import Question
from src.trivia.domain.question_bank import QuestionBank
from src.shared.telemetry import Telemetry, measure_time

T = TypeVar("T")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def date_seed(day_iso: str) -> int:
    """Sum of character codes of a 'YYYY-MM-DD' string."""
    return sum(ord(ch) for ch in day_iso)


def seeded_shuffle(items: Sequence[T], seed: int) -> list[T]:
    """
    Fisher-Yates from the end, driven by a small LCG.
    Must stay bit-identical with the mobile client so every device gets the
    same daily quiz. Float division mirrors the client's double arithmetic.
    """
    pool = list(items)
    for i in range(len(pool) - 1, 0, -1):
        seed = (
            seed * GameConfig.LCG_MULTIPLIER + GameConfig.LCG_INCREMENT
        ) % GameConfig.LCG_MODULUS
        j = math.floor((seed / GameConfig.LCG_MODULUS) * (i + 1))
        pool[i], pool[j] = pool[j], pool[i]
    return pool


class QuestionSampler:
    """
    Pure Domain Logic.
    Produces the ordered question list for a new session.
    """

    def __init__(
        self,
        bank: QuestionBank,
        rng: random.Random | None = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.bank = bank
        self.rng = rng or random.Random()
        self.today = today
        self.telemetry = Telemetry("QuestionSampler")

    @measure_time("sample_random")
    def sample_random(
        self,
        count: int,
        category: Category | None = None,
        fans_only: bool = False,
    ) -> list[Question]:
        if count <= 0:
            return []

        pool = list(self.bank)
        if category is not None:
            pool = [q for q in pool if q.category == category]

        if fans_only:
            # Bias towards harder questions by replication, hard:medium:easy = 2:2:1
            weights = GameConfig.FANS_ONLY_WEIGHTS
            pool = [q for q in pool for _ in range(weights[q.difficulty.value])]

        self.rng.shuffle(pool)

        # Replicas collapse to their first position after the shuffle.
        selection: list[Question] = []
        seen: set[str] = set()
        for q in pool:
            if q.id in seen:
                continue
            seen.add(q.id)
            selection.append(q)
            if len(selection) == count:
                break

        self.telemetry.log_info(
            "Sampled Random",
            requested=count,
            returned=len(selection),
            category=category.value if category else None,
            fans_only=fans_only,
        )
        return selection

    @measure_time("sample_daily")
    def sample_daily(self, count: int, day: str | None = None) -> list[Question]:
        """Same questions, same order, for every player on the same UTC day."""
        if count <= 0:
            return []

        day_iso = day or self.today().isoformat()
        shuffled = seeded_shuffle(self.bank.questions, date_seed(day_iso))
        selection = shuffled[:count]

        self.telemetry.log_info(
            "Sampled Daily", day=day_iso, requested=count, returned=len(selection)
        )
        return selection
