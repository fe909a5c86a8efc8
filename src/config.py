import os
from enum import Enum
from typing import Final


class Category(str, Enum):
    # Enum Member = ("storage key", "Display Label", "Icon")
    CHARACTERS = ("characters", "Postacie", "👤")
    QUOTES = ("quotes", "Cytaty", "💬")
    RELATIONSHIPS = ("relationships", "Relacje", "❤️")
    ACTORS = ("actors", "Kto zagrał...", "🎭")
    PLOT = ("plot", "Fabuła", "📖")
    DETAILS = ("details", "Detale", "🔍")

    label: str
    icon: str

    def __new__(cls, key: str, label: str, icon: str) -> "Category":
        member = str.__new__(cls, key)
        member._value_ = key
        member.label = label
        member.icon = icon
        return member

    @classmethod
    def get_icon(cls, key: str) -> str:
        """Returns the icon for a given category key, or a default."""
        for category in cls:
            if category.value == key:
                return category.icon
        return "❓"  # Default fallback

    @classmethod
    def all_labels(cls) -> list[str]:
        """Returns a list of all category display names."""
        return [c.label for c in cls]


class StorageKeys:
    """Keys used against the key/value persistence gateway."""

    BEST_SCORES: Final[str] = "ranczo_best_scores"
    DAILY: Final[str] = "ranczo_daily"
    FAN_POINTS: Final[str] = "ranczo_fan_points"
    HISTORY: Final[str] = "ranczo_history"
    SETTINGS: Final[str] = "ranczo_settings"

    PROGRESSION: Final[tuple[str, ...]] = (BEST_SCORES, DAILY, FAN_POINTS, HISTORY)


class GameConfig:
    # --- Infrastructure ---
    DATA_DIR: str = os.getenv("TRIVIA_DATA_DIR", "data")
    STORAGE_BACKEND: str = os.getenv("TRIVIA_STORAGE", "sqlite")  # 'sqlite' | 'files'
    DB_FILENAME = "ranczo.db"
    METRICS_PORT: int | None = (
        int(os.environ["TRIVIA_METRICS_PORT"])
        if os.getenv("TRIVIA_METRICS_PORT")
        else None
    )

    # --- App Identity ---
    APP_TITLE = "Quiz Ranczo"

    # --- Game Rules ---
    DAILY_QUESTIONS: Final[int] = 10
    DAILY_BONUS: Final[int] = 5
    DEFAULT_QUESTIONS_PER_QUIZ: Final[int] = 10
    QUESTIONS_PER_QUIZ_OPTIONS: Final[tuple[int, ...]] = (10, 15, 20)
    HISTORY_LIMIT: Final[int] = 100

    # --- Fans-only weighting (copies of each question in the sampling pool) ---
    FANS_ONLY_WEIGHTS: Final[dict[str, int]] = {"hard": 2, "medium": 2, "easy": 1}

    # --- Daily shuffle LCG (shared with the mobile client, do not change) ---
    LCG_MULTIPLIER: Final[int] = 9301
    LCG_INCREMENT: Final[int] = 49297
    LCG_MODULUS: Final[int] = 233280

    # --- Categories ---
    CATEGORIES = Category.all_labels()

    @staticmethod
    def get_db_path(data_dir: str | None = None) -> str:
        """Returns the SQLite file path inside the data directory."""
        return os.path.join(data_dir or GameConfig.DATA_DIR, GameConfig.DB_FILENAME)
