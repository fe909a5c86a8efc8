import asyncio
from collections.abc import Awaitable, Callable

from src.shared.telemetry import PERSISTENCE_FAILURES, Telemetry

WriteAction = Callable[[], Awaitable[None]]


class PersistenceQueue:
    """
    Fire-and-forget writer.

    Callers enqueue synchronously and move on; a single worker task applies
    the writes in issue order. A failed write is logged, counted and dropped:
    the in-memory state stays authoritative for the current run.
    """

    def __init__(self) -> None:
        self.telemetry = Telemetry("PersistenceQueue")
        self._queue: asyncio.Queue[tuple[str, str, WriteAction]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Starts the worker on the running loop. Safe to call multiple times."""
        if self.is_running:
            return
        self._worker = asyncio.get_running_loop().create_task(self._run())
        self.telemetry.log_info("🔄 Write worker started", pending=self.pending)

    def submit(self, operation: str, key: str, action: WriteAction) -> None:
        self._queue.put_nowait((operation, key, action))
        self._ensure_worker()

    async def drain(self) -> None:
        """
        Waits until every write issued so far has been applied (or dropped),
        including one the worker has already taken off the queue.
        """
        if self._queue.qsize():
            self.start()
        await self._queue.join()

    async def stop(self) -> None:
        await self.drain()
        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self.telemetry.log_info("🛑 Write worker stopped")

    def _ensure_worker(self) -> None:
        if self.is_running:
            return
        try:
            self.start()
        except RuntimeError:
            # No loop yet (sync caller before startup); start() picks the backlog up.
            pass

    async def _run(self) -> None:
        while True:
            operation, key, action = await self._queue.get()
            try:
                await action()
            except Exception as e:
                PERSISTENCE_FAILURES.labels(operation=operation).inc()
                self.telemetry.log_error(
                    "Background write failed", e, operation=operation, key=key
                )
            finally:
                self._queue.task_done()
