"""MinIO/S3 storage adapter implementing StoragePort.

The minio SDK is synchronous, so every call is pushed to the default
executor to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import io
import logging
from datetime import timedelta

from minio import Minio
from minio.deleteobjects import DeleteObject
from minio.error import S3Error

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}


class MinioStorageAdapter:
    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        secure: bool = True,
        region: str | None = None,
        client: Minio | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.client = client or Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region,
        )
        logger.info(f"MinioStorageAdapter initialized: endpoint={endpoint}")

    async def _run(self, fn):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, fn)

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        await self._run(
            lambda: self.client.put_object(
                bucket,
                path,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        )
        logger.info(f"Uploaded object: bucket={bucket}, key={path}, size={len(data)}")
        return path

    async def download(self, bucket: str, path: str) -> bytes | None:
        """Object bytes, or None when the object does not exist."""

        def _read() -> bytes:
            response = self.client.get_object(bucket, path)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        try:
            return await self._run(_read)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                logger.warning(f"Object not found: bucket={bucket}, key={path}")
                return None
            logger.error(f"S3 error downloading {bucket}/{path}: {e}")
            raise

    async def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        return await self._run(
            lambda: self.client.presigned_get_object(
                bucket, path, expires=timedelta(seconds=ttl_seconds)
            )
        )

    async def remove(self, bucket: str, paths: list[str]) -> None:
        def _remove() -> list:
            # remove_objects is lazy; errors only surface while iterating
            return list(self.client.remove_objects(bucket, [DeleteObject(p) for p in paths]))

        errors = await self._run(_remove)
        for err in errors:
            logger.error(f"Failed to remove {bucket}/{err.name}: {err.message}")
