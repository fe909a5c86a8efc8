from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from src.config import Category


# --- Enums ---
class QuestionType(str, Enum):
    SINGLE = "single"  # classic ABCD
    MULTIPLE = "multiple"
    TRUE_FALSE = "true_false"
    QUOTE_AUTHOR = "quote_author"
    QUOTE_COMPLETE = "quote_complete"
    IMAGE = "image"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SessionMode(str, Enum):
    DAILY = "daily"
    RANDOM = "random"
    CATEGORY = "category"


# JSON files are shared with the mobile client, which uses camelCase keys.
_CAMEL_CONFIG = ConfigDict(
    frozen=True, alias_generator=to_camel, populate_by_name=True
)


# --- Entities ---
class Question(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    type: QuestionType
    category: Category
    difficulty: Difficulty
    season: int | None = None
    text: str = Field(alias="question")
    image: str | None = None
    options: list[str] = Field(min_length=2, max_length=6)
    correct_answers: list[int] = Field(min_length=1)
    explanation: str = ""
    points: int = Field(ge=1, le=3)

    @model_validator(mode="after")
    def _check_answer_key(self) -> "Question":
        for index in self.correct_answers:
            if not 0 <= index < len(self.options):
                raise ValueError(
                    f"Question {self.id}: correct index {index} out of range"
                )
        if len(set(self.correct_answers)) != len(self.correct_answers):
            raise ValueError(f"Question {self.id}: duplicate correct indices")
        if self.type != QuestionType.MULTIPLE and len(self.correct_answers) != 1:
            raise ValueError(
                f"Question {self.id}: '{self.type.value}' needs exactly one answer"
            )
        return self

    @property
    def is_multiple(self) -> bool:
        return self.type == QuestionType.MULTIPLE


# --- History (one record shape per session mode) ---
class _HistoryEntryBase(BaseModel):
    model_config = _CAMEL_CONFIG

    id: str
    percent: int = Field(ge=0, le=100)
    earned_points: int = Field(ge=0)
    total_points: int = Field(ge=0)
    correct_count: int = Field(ge=0)
    total_questions: int = Field(ge=0)
    completed_at: datetime = Field(alias="date")
    questions: list[Question]
    answers: dict[str, list[int]]


class DailyHistoryEntry(_HistoryEntryBase):
    quiz_type: Literal["daily"] = "daily"


class RandomHistoryEntry(_HistoryEntryBase):
    quiz_type: Literal["random"] = "random"


class CategoryHistoryEntry(_HistoryEntryBase):
    quiz_type: Literal["category"] = "category"
    category: Category


HistoryEntry = Annotated[
    Union[DailyHistoryEntry, RandomHistoryEntry, CategoryHistoryEntry],
    Field(discriminator="quiz_type"),
]

HISTORY_ADAPTER: TypeAdapter[list[HistoryEntry]] = TypeAdapter(list[HistoryEntry])


# --- Rank ladder entries ---
@dataclass(frozen=True)
class FanRank:
    points: int
    title: str
    emoji: str


@dataclass(frozen=True)
class ResultLevel:
    """Per-session tier shown on the result screen (percent based)."""

    min_percent: int
    title: str
    emoji: str
