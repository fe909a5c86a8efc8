import asyncio
from pathlib import Path

from src.trivia.domain.ports import IKeyValueStore
from src.shared.telemetry import Telemetry


class JsonFileKeyValueStore(IKeyValueStore):
    """
    One file per key (`<dir>/<key>.json`), the layout the mobile client uses
    in its documents directory. Errors never leave this class.
    """

    def __init__(self, directory: str | Path) -> None:
        self.telemetry = Telemetry("JsonFileKeyValueStore")
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    def _get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")
        except OSError as e:
            self.telemetry.log_error("get failed", e, key=key)
            return None

    def _set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Readers see either the old or the new file, never a partial one
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            self.telemetry.log_error("set failed", e, key=key)

    def _remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            self.telemetry.log_error("remove failed", e, key=key)
