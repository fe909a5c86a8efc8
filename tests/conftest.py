import random
from datetime import date

import pytest
import pytest_asyncio

from src.config import Category
from src.trivia.adapters.db_manager import DatabaseManager
from src.trivia.adapters.sqlite_store import SQLiteKeyValueStore
from src.trivia.domain.models import Difficulty
from src.trivia.domain.progression import ProgressionStore
from src.trivia.domain.question_bank import QuestionBank
from src.shared.write_queue import PersistenceQueue
from tests.drivers.factories import FakeClock, MemoryKeyValueStore, create_question


@pytest.fixture
def sample_question():
    return create_question("Q1", correct=[2], points=2)


@pytest.fixture
def small_bank():
    """Twelve questions: two per category, difficulty and points cycling 1..3."""
    questions = []
    difficulties = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]
    for i, category in enumerate(Category):
        for j in range(2):
            n = i * 2 + j
            questions.append(
                create_question(
                    f"{category.value}-{j}",
                    category=category,
                    difficulty=difficulties[n % 3],
                    points=n % 3 + 1,
                )
            )
    return QuestionBank(questions)


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


@pytest.fixture
def clock():
    return FakeClock(date(2026, 3, 14))


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def in_memory_db():
    """Returns a clean, in-memory database."""
    db_manager = DatabaseManager(db_path=":memory:")
    yield db_manager
    db_manager.close()


@pytest.fixture
def sqlite_store(in_memory_db):
    return SQLiteKeyValueStore(in_memory_db)


@pytest_asyncio.fixture
async def writer():
    queue = PersistenceQueue()
    queue.start()
    yield queue
    await queue.stop()


@pytest_asyncio.fixture
async def progression(memory_store, writer, clock):
    """Loaded ProgressionStore over an empty memory store."""
    store = ProgressionStore(memory_store, writer, today=clock)
    await store.load()
    return store
