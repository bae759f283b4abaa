"""StoragePort protocol for the managed object store."""

from __future__ import annotations

from typing import Protocol


class StoragePort(Protocol):
    """Abstraction over object storage used by the pipelines.

    Implementations live in the infrastructure layer.
    """

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str: ...

    async def download(self, bucket: str, path: str) -> bytes | None: ...

    async def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str: ...

    async def remove(self, bucket: str, paths: list[str]) -> None: ...
