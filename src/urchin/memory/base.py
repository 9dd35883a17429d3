"""
Storage contract and in-memory implementation.
"""

import copy
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    """Async key/value storage owned by the host.

    ``get`` maps every requested key to its value (``None`` when absent).
    Must be read-your-writes consistent for a single caller.
    """

    async def get(self, keys: str | list[str]) -> dict[str, Any]:
        ...

    async def set(self, data: dict[str, Any]) -> None:
        ...


class InMemoryStorage:
    """Dict-backed storage. Values are copied on the way in and out."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, keys: str | list[str]) -> dict[str, Any]:
        if isinstance(keys, str):
            keys = [keys]
        return {k: copy.deepcopy(self._data.get(k)) for k in keys}

    async def set(self, data: dict[str, Any]) -> None:
        self._data.update(copy.deepcopy(data))
