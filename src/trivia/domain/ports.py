from abc import ABC, abstractmethod


class IKeyValueStore(ABC):
    """
    On-device key/value persistence gateway.
    String keys, string values. Implementations are best-effort: read errors
    surface as None, write errors are swallowed (and logged) by the adapter.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        pass
