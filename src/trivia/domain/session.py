import logging
from collections.abc import Sequence
from enum import Enum, auto

from src.config import Category
from src.trivia.domain import evaluator
from src.trivia.domain.models import (
    CategoryHistoryEntry,
    HistoryEntry,
    Question,
    SessionMode,
)

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    NOT_STARTED = auto()  # No active session
    IN_PROGRESS = auto()  # Questions being answered
    FINISHED = auto()  # Result screen / review


class SessionAction(Enum):
    START = auto()
    SUBMIT_ANSWER = auto()
    ADVANCE = auto()
    FINISH = auto()
    RESET = auto()


class QuizSession:
    """
    In-memory state of the running quiz.
    Knows nothing about persistence: reconciliation happens in QuizService.
    """

    def __init__(self) -> None:
        self._status = SessionStatus.NOT_STARTED
        self.questions: list[Question] = []
        self.mode: SessionMode | None = None
        self.category: Category | None = None
        self.current_index = 0
        self.answers: dict[str, list[int]] = {}
        self.is_review = False

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_finished(self) -> bool:
        return self._status == SessionStatus.FINISHED

    # --- Transitions ---

    def _transition(self, action: SessionAction) -> bool:
        """
        The Transition Table.
        Returns False (and logs) for calls the flow should never make.
        """
        previous = self._status

        match (self._status, action):
            # Starting over from any state replaces the session
            case (_, SessionAction.START):
                self._status = SessionStatus.IN_PROGRESS
            case (SessionStatus.IN_PROGRESS, SessionAction.SUBMIT_ANSWER | SessionAction.ADVANCE):
                pass
            case (SessionStatus.IN_PROGRESS, SessionAction.FINISH):
                self._status = SessionStatus.FINISHED
            case (_, SessionAction.RESET):
                self._status = SessionStatus.NOT_STARTED
            case _:
                logger.error(f"⛔ INVALID TRANSITION: {self._status.name} + {action.name}")
                return False

        if previous != self._status:
            logger.info(
                f"🔄 Session: {previous.name} --[{action.name}]--> {self._status.name}"
            )
        return True

    def start(
        self,
        questions: Sequence[Question],
        mode: SessionMode,
        category: Category | None = None,
    ) -> None:
        if mode == SessionMode.CATEGORY and category is None:
            raise ValueError("Category mode needs a category")

        self._transition(SessionAction.START)
        self.questions = list(questions)
        self.mode = mode
        self.category = category if mode == SessionMode.CATEGORY else None
        self.current_index = 0
        self.answers = {}
        self.is_review = False

    def submit_answer(self, question_id: str, selected: Sequence[int]) -> bool:
        """Records (or replaces) the answer and returns whether it is correct."""
        if not self._transition(SessionAction.SUBMIT_ANSWER):
            return False

        question = next((q for q in self.questions if q.id == question_id), None)
        if question is None:
            logger.error(f"⛔ Answer for unknown question '{question_id}' ignored")
            return False

        self.answers[question_id] = list(selected)
        return evaluator.is_correct(question, selected)

    def advance(self) -> None:
        if not self._transition(SessionAction.ADVANCE):
            return
        if self.is_last_question:
            logger.error("⛔ advance() on the last question; call finish() instead")
            return
        if not self.is_current_answered:
            logger.error(
                f"⛔ advance() without an answer for question index {self.current_index}"
            )
            return
        self.current_index += 1

    def finish(self) -> None:
        self._transition(SessionAction.FINISH)

    def reset(self) -> None:
        self._transition(SessionAction.RESET)
        self.questions = []
        self.mode = None
        self.category = None
        self.current_index = 0
        self.answers = {}
        self.is_review = False

    @classmethod
    def for_review(cls, entry: HistoryEntry) -> "QuizSession":
        """Read-only, already finished session rebuilt from a history entry."""
        session = cls()
        session._status = SessionStatus.FINISHED
        session.questions = list(entry.questions)
        session.mode = SessionMode(entry.quiz_type)
        if isinstance(entry, CategoryHistoryEntry):
            session.category = entry.category
        session.answers = {qid: list(sel) for qid, sel in entry.answers.items()}
        session.current_index = max(len(session.questions) - 1, 0)
        session.is_review = True
        return session

    # --- Queries ---

    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    @property
    def is_current_answered(self) -> bool:
        question = self.current_question
        return question is not None and question.id in self.answers

    def _confirmed_count(self) -> int:
        return self.current_index + (1 if self.is_current_answered else 0)

    def running_score(self) -> int:
        """Points for confirmed questions only; never the one still open."""
        confirmed = self.questions[: self._confirmed_count()]
        return evaluator.earned_points(confirmed, self.answers)

    def progress_fraction(self) -> float:
        if not self.questions:
            return 0.0
        return self._confirmed_count() / len(self.questions)

    @property
    def earned_points(self) -> int:
        return evaluator.earned_points(self.questions, self.answers)

    @property
    def total_points(self) -> int:
        return evaluator.total_points(self.questions)

    @property
    def correct_count(self) -> int:
        return evaluator.correct_count(self.questions, self.answers)

    @property
    def percent(self) -> int:
        return evaluator.score_percent(self.earned_points, self.total_points)
