import logging
import sys
import time
import uuid
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Any, ParamSpec, TypeVar, cast

# --- Prometheus Imports ---
from prometheus_client import REGISTRY, Counter, Histogram

# --- Context for Correlation IDs ---
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="system")

# --- Prometheus Metric Definitions ---
DURATION_METRIC_NAME = "trivia_method_duration_seconds"
FAILURES_METRIC_NAME = "trivia_persistence_failures_total"

# Explicitly declare the types for module-level usage
METHOD_DURATION: Histogram
PERSISTENCE_FAILURES: Counter

try:
    METHOD_DURATION = Histogram(
        DURATION_METRIC_NAME, "Time spent in method", ["component", "method"]
    )
except ValueError:
    # Already registered (module re-import); reuse the registered collector.
    METHOD_DURATION = cast(
        Histogram, REGISTRY._names_to_collectors[DURATION_METRIC_NAME]
    )

try:
    PERSISTENCE_FAILURES = Counter(
        FAILURES_METRIC_NAME,
        "Key/value writes that failed and were dropped",
        ["operation"],
    )
except ValueError:
    PERSISTENCE_FAILURES = cast(
        Counter, REGISTRY._names_to_collectors[FAILURES_METRIC_NAME]
    )

# --- Type Definitions for Decorators ---
P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def _timed(self_obj: Any, metric_name: str, method: str) -> Iterator[None]:
    """Observes the block duration and logs it on the owner's telemetry, if any."""
    telemetry = getattr(self_obj, "telemetry", None)
    component = self_obj.__class__.__name__ if self_obj else "Unknown"
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        duration = time.perf_counter() - start
        METHOD_DURATION.labels(component=component, method=method).observe(duration)
        if telemetry:
            telemetry.log_error(
                f"💥 Failed: {metric_name}", e, duration_ms=round(duration * 1000, 2)
            )
        raise

    duration = time.perf_counter() - start
    METHOD_DURATION.labels(component=component, method=method).observe(duration)
    if telemetry:
        telemetry.log_info(f"⏱️ {metric_name}", duration_ms=round(duration * 1000, 2))


def measure_time(metric_name: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for timing instance methods + logging.
    Uses ParamSpec to preserve the signature of the decorated function.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with _timed(args[0] if args else None, metric_name, func.__name__):
                return func(*args, **kwargs)

        return wrapper

    return decorator


def measure_time_async(
    metric_name: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Coroutine flavour of measure_time."""

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with _timed(args[0] if args else None, metric_name, func.__name__):
                return await func(*args, **kwargs)

        return wrapper

    return decorator


def _component_logger(component: str) -> logging.Logger:
    """Per-component logger with a stdout handler unless logging is already configured."""
    logger = logging.getLogger(component)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


class Telemetry:
    """
    Facade for Logs and Metrics.

    Every line reads `[trace] <marker> Event | key=value ...`. Fields given to
    the constructor or to bind() are repeated on every line, so all events of
    one quiz session carry its mode and category.
    """

    def __init__(self, component_name: str, **fields: Any) -> None:
        self.component = component_name
        self.fields = fields
        self.logger = _component_logger(component_name)

    def bind(self, **fields: Any) -> "Telemetry":
        """Same component and logger, extra fields on every event."""
        bound = Telemetry(self.component, **{**self.fields, **fields})
        bound.logger = self.logger
        return bound

    @staticmethod
    def start_trace() -> str:
        c_id = str(uuid.uuid4())[:8]
        correlation_id_ctx.set(c_id)
        return c_id

    @staticmethod
    def get_trace_id() -> str:
        return correlation_id_ctx.get()

    def _format(self, marker: str, event: str, kwargs: dict[str, Any]) -> str:
        data = {**self.fields, **kwargs}
        details = " ".join(f"{k}={v!r}" for k, v in data.items() if v is not None)
        line = f"[{self.get_trace_id()}] {marker}{event}"
        return f"{line} | {details}" if details else line

    def log_info(self, event: str, **kwargs: Any) -> None:
        self.logger.info(self._format("", event, kwargs))

    def log_warning(self, event: str, **kwargs: Any) -> None:
        self.logger.warning(self._format("⚠️ ", event, kwargs))

    def log_error(self, event: str, error: Exception, **kwargs: Any) -> None:
        self.logger.error(
            self._format("❌ ", event, {**kwargs, "error": str(error)}), exc_info=error
        )
