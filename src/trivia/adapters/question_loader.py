import json
from pathlib import Path

from pydantic import TypeAdapter

from src.trivia.domain.models import Question
from src.trivia.domain.question_bank import QuestionBank
from src.shared.telemetry import Telemetry

DEFAULT_BANK_PATH = Path(__file__).resolve().parent.parent / "data" / "questions.json"

_QUESTIONS_ADAPTER: TypeAdapter[list[Question]] = TypeAdapter(list[Question])


class QuestionLoader:
    """
    Loads the bundled question bank.
    Content errors are bugs in the data file: they fail loudly at startup.
    """

    def __init__(self, path: str | Path = DEFAULT_BANK_PATH) -> None:
        self.path = Path(path)
        self.telemetry = Telemetry("QuestionLoader")

    def load(self) -> QuestionBank:
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        questions = _QUESTIONS_ADAPTER.validate_python(data)
        bank = QuestionBank(questions)
        self.telemetry.log_info(
            f"Loaded {len(bank)} questions.", path=str(self.path)
        )
        return bank
