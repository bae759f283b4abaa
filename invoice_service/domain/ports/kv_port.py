"""KeyValuePort protocol for submission metadata bookkeeping."""

from __future__ import annotations

from typing import Any, Protocol


class KeyValuePort(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def mset(self, keys: list[str], values: list[Any]) -> None: ...

    async def get_by_prefix(self, prefix: str) -> list[Any]: ...

    async def delete(self, key: str) -> None: ...
