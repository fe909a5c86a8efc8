from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from src.config import GameConfig, StorageKeys
from src.trivia.domain.ports import IKeyValueStore
from src.shared.telemetry import Telemetry
from src.shared.write_queue import PersistenceQueue


class UserSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    questions_per_quiz: int = GameConfig.DEFAULT_QUESTIONS_PER_QUIZ
    sound_enabled: bool = True

    @field_validator("questions_per_quiz")
    @classmethod
    def _allowed_count(cls, value: int) -> int:
        if value not in GameConfig.QUESTIONS_PER_QUIZ_OPTIONS:
            raise ValueError(
                f"questions_per_quiz must be one of {GameConfig.QUESTIONS_PER_QUIZ_OPTIONS}"
            )
        return value


class SettingsStore:
    def __init__(self, store: IKeyValueStore, writer: PersistenceQueue) -> None:
        self.store = store
        self.writer = writer
        self.telemetry = Telemetry("SettingsStore")
        self.settings = UserSettings()
        self.loaded = False

    async def load(self) -> None:
        try:
            raw = await self.store.get(StorageKeys.SETTINGS)
        except Exception as e:
            self.telemetry.log_error("Settings read failed", e)
            raw = None

        if raw:
            try:
                self.settings = UserSettings.model_validate_json(raw)
            except ValidationError as e:
                self.telemetry.log_error("Corrupt settings, using defaults", e)
                self.settings = UserSettings()
        self.loaded = True

    @property
    def questions_per_quiz(self) -> int:
        return self.settings.questions_per_quiz

    @property
    def sound_enabled(self) -> bool:
        return self.settings.sound_enabled

    def set_questions_per_quiz(self, count: int) -> None:
        if count not in GameConfig.QUESTIONS_PER_QUIZ_OPTIONS:
            raise ValueError(f"Unsupported question count: {count}")
        self.settings = self.settings.model_copy(update={"questions_per_quiz": count})
        self._persist()

    def set_sound_enabled(self, enabled: bool) -> None:
        self.settings = self.settings.model_copy(update={"sound_enabled": enabled})
        self._persist()

    def _persist(self) -> None:
        payload = self.settings.model_dump_json(by_alias=True)
        self.writer.submit(
            "set",
            StorageKeys.SETTINGS,
            lambda: self.store.set(StorageKeys.SETTINGS, payload),
        )
