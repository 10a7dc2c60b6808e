from abc import ABC, abstractmethod
from logging import getLogger
import sys

if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

logger = getLogger(__name__)


class Keystore(ABC):
    """Async key-value storage for opaque strings."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    async def set(self, key: str, value: str):
        pass

    @abstractmethod
    async def delete(self, key: str):
        """Remove `key`. Removing a missing key is not an error."""
        pass


class MemoryKeystore(Keystore):
    values: dict[str, str]

    def __init__(self, values: dict[str, str] | None = None):
        self.values = dict(values or {})

    @override
    async def get(self, key: str) -> str | None:
        logger.debug(f"MemoryKeystore get({key})")
        return self.values.get(key)

    @override
    async def set(self, key: str, value: str):
        logger.debug(f"MemoryKeystore set({key})")
        self.values[key] = value

    @override
    async def delete(self, key: str):
        logger.debug(f"MemoryKeystore delete({key})")
        _ = self.values.pop(key, None)
