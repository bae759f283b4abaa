from __future__ import annotations

from datetime import timedelta

import pytest

from invoice_service.infrastructure.storage.minio_adapter import MinioStorageAdapter
from invoice_service.utils.masking import mask_secrets


class _Object:
    def __init__(self, data: bytes):
        self._data = data
        self.closed = False
        self.released = False

    def read(self) -> bytes:
        return self._data

    def close(self) -> None:
        self.closed = True

    def release_conn(self) -> None:
        self.released = True


class FakeMinio:
    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.presigned: list[tuple[str, str, timedelta]] = []
        self.last_response: _Object | None = None

    def put_object(self, bucket, name, data, length, content_type=None):
        self.objects[(bucket, name)] = data.read(length)

    def get_object(self, bucket, name):
        self.last_response = _Object(self.objects[(bucket, name)])
        return self.last_response

    def presigned_get_object(self, bucket, name, expires):
        self.presigned.append((bucket, name, expires))
        return f"https://minio.example.com/{bucket}/{name}?X-Amz-Expires={int(expires.total_seconds())}"

    def remove_objects(self, bucket, delete_objects):
        for obj in delete_objects:
            self.objects.pop((bucket, obj.name), None)
        return iter([])


@pytest.mark.asyncio
async def test_upload_then_download_releases_connection():
    fake = FakeMinio()
    adapter = MinioStorageAdapter("minio:9000", "ak", "sk", client=fake)

    key = await adapter.upload("invoices", "a/inv.pdf", b"%PDF", "application/pdf")
    data = await adapter.download("invoices", key)

    assert data == b"%PDF"
    assert fake.last_response.closed and fake.last_response.released


@pytest.mark.asyncio
async def test_signed_url_uses_ttl():
    fake = FakeMinio()
    adapter = MinioStorageAdapter("minio:9000", "ak", "sk", client=fake)

    url = await adapter.create_signed_url("invoices", "a/inv.pdf", 3600)

    assert url.endswith("X-Amz-Expires=3600")
    assert fake.presigned[0][2] == timedelta(hours=1)


@pytest.mark.asyncio
async def test_remove_deletes_objects():
    fake = FakeMinio()
    fake.objects[("invoices", "a")] = b"1"
    fake.objects[("invoices", "b")] = b"2"
    adapter = MinioStorageAdapter("minio:9000", "ak", "sk", client=fake)

    await adapter.remove("invoices", ["a"])

    assert list(fake.objects) == [("invoices", "b")]


def test_mask_secrets_is_recursive_and_non_destructive():
    payload = {"username": "u", "password": "p", "nested": [{"refresh_token": "r", "keep": 1}]}

    masked = mask_secrets(payload)

    assert masked == {"username": "u", "password": "***", "nested": [{"refresh_token": "***", "keep": 1}]}
    assert payload["password"] == "p"
