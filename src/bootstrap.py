import logging
import os
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

# --- OTel & Observability Imports ---
from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

# --- Prometheus Import ---
from prometheus_client import start_http_server

# --- Application Imports ---
from src.config import GameConfig
from src.trivia.adapters.db_manager import DatabaseManager
from src.trivia.adapters.file_store import JsonFileKeyValueStore
from src.trivia.adapters.question_loader import DEFAULT_BANK_PATH, QuestionLoader
from src.trivia.adapters.sqlite_store import SQLiteKeyValueStore
from src.trivia.application.service import QuizService, utc_now
from src.trivia.domain.ports import IKeyValueStore
from src.trivia.domain.progression import ProgressionStore
from src.trivia.domain.question_bank import QuestionBank
from src.trivia.domain.sampler import QuestionSampler, utc_today
from src.trivia.domain.settings import SettingsStore
from src.shared.telemetry import Telemetry
from src.shared.write_queue import PersistenceQueue


# --- 1. Observability ---
def configure_observability(service_name: str = "ranczo-quiz") -> bool:
    """
    Sends Traces and Logs to an OTLP collector when OTEL env vars are set,
    and exposes Prometheus metrics when TRIVIA_METRICS_PORT is set.
    Returns True when OTLP export was configured.
    """
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s"
    )

    if GameConfig.METRICS_PORT:
        try:
            start_http_server(GameConfig.METRICS_PORT)
            logging.info(f"✅ Prometheus metrics on port {GameConfig.METRICS_PORT}")
        except OSError:
            logging.warning(
                f"⚠️ Prometheus port {GameConfig.METRICS_PORT} already in use. Skipping."
            )

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    headers = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")
    if not endpoint or not headers:
        logging.warning("⚠️ OTEL env vars not set. Telemetry stays local.")
        return False

    resource = Resource.create({"service.name": service_name})

    # --- A. TRACING ---
    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers))
    )
    trace.set_tracer_provider(trace_provider)

    # --- B. LOGGING (root logger -> OTLP) ---
    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, headers=headers))
    )
    set_logger_provider(logger_provider)
    handler = LoggingHandler(level=logging.INFO, logger_provider=logger_provider)
    logging.getLogger().addHandler(handler)
    return True


def build_store(
    backend: str, data_dir: str
) -> tuple[IKeyValueStore, DatabaseManager | None]:
    if backend == "files":
        return JsonFileKeyValueStore(Path(data_dir) / "documents"), None
    if backend == "sqlite":
        db_manager = DatabaseManager(
            db_path=":memory:" if data_dir == ":memory:" else GameConfig.get_db_path(data_dir)
        )
        return SQLiteKeyValueStore(db_manager), db_manager
    raise ValueError(f"Unknown storage backend: {backend}")


# --- 2. Composition Root ---
@dataclass
class AppContext:
    """
    Owns every long-lived object of one app run.
    Lifecycle: create() -> await init() -> ... -> await teardown().
    """

    store: IKeyValueStore
    writer: PersistenceQueue
    bank: QuestionBank
    progression: ProgressionStore
    settings: SettingsStore
    service: QuizService
    db_manager: DatabaseManager | None = None
    ready: bool = False

    @classmethod
    def create(
        cls,
        store: IKeyValueStore | None = None,
        bank: QuestionBank | None = None,
        data_dir: str | None = None,
        backend: str | None = None,
        bank_path: str | Path = DEFAULT_BANK_PATH,
        rng: random.Random | None = None,
        today: Callable[[], date] = utc_today,
        now: Callable[[], datetime] = utc_now,
    ) -> "AppContext":
        db_manager = None
        if store is None:
            store, db_manager = build_store(
                backend or GameConfig.STORAGE_BACKEND, data_dir or GameConfig.DATA_DIR
            )
        if bank is None:
            bank = QuestionLoader(bank_path).load()

        writer = PersistenceQueue()
        progression = ProgressionStore(store, writer, today=today)
        settings = SettingsStore(store, writer)
        sampler = QuestionSampler(bank, rng=rng, today=today)
        service = QuizService(sampler, progression, settings, now=now)

        return cls(
            store=store,
            writer=writer,
            bank=bank,
            progression=progression,
            settings=settings,
            service=service,
            db_manager=db_manager,
        )

    async def init(self) -> None:
        """Starts the writer and loads persisted state. Never fails on bad data."""
        telemetry = Telemetry("AppContext")
        self.writer.start()
        await self.progression.load()
        await self.settings.load()
        self.ready = True
        telemetry.log_info(
            "App Ready",
            questions=len(self.bank),
            fan_points=self.progression.fan_points,
            rank=self.progression.get_current_rank().title,
        )

    async def teardown(self) -> None:
        """Flushes pending writes and releases the database."""
        self.service.abandon()
        await self.writer.stop()
        if self.db_manager:
            self.db_manager.close()
        self.ready = False
