from collections.abc import Iterable, Iterator

from src.config import Category
from src.trivia.domain.models import Question


class QuestionBank:
    """
    Immutable, ordered pool of questions.
    Order matters: the daily shuffle is defined over the bank order.
    """

    def __init__(self, questions: Iterable[Question]) -> None:
        self._questions: tuple[Question, ...] = tuple(questions)
        self._by_id = {q.id: q for q in self._questions}
        if len(self._by_id) != len(self._questions):
            raise ValueError("Question bank contains duplicate ids")

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def get(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def by_category(self, category: Category) -> list[Question]:
        return [q for q in self._questions if q.category == category]

    def count_for_category(self, category: Category) -> int:
        return len(self.by_category(category))
