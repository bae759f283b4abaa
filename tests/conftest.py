from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, Callable

import httpx
import pytest

from invoice_service.domain.models import NotifyResult, VendorRecord
from invoice_service.infrastructure.clients.klearstack_http import KlearStackHttpClient

KLEAR_BASE = "https://klear.example.com/access/klearstack"


class FakeKV:
    def __init__(self, data: dict[str, Any] | None = None):
        self.data: dict[str, Any] = dict(data or {})

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    async def mset(self, keys: list[str], values: list[Any]) -> None:
        for k, v in zip(keys, values):
            self.data[k] = v

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        return [v for k, v in sorted(self.data.items()) if k.startswith(prefix)]

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FakeAudit:
    def __init__(self):
        self.rows: list[dict[str, Any]] = []

    async def record(self, submission_id, step, request_payload, response_payload, status_code, error_message=None):
        self.rows.append(
            {
                "submission_id": submission_id,
                "step": step,
                "request_payload": request_payload,
                "response_payload": response_payload,
                "status_code": status_code,
                "error_message": error_message,
            }
        )
        return True

    def steps(self) -> list[str]:
        return [row["step"] for row in self.rows]


class FakeStorage:
    def __init__(self, objects: dict[tuple[str, str], bytes] | None = None, signed_url_error: Exception | None = None):
        self.objects = dict(objects or {})
        self.signed: list[tuple[str, str, int]] = []
        self.signed_url_error = signed_url_error

    async def upload(self, bucket, path, data, content_type):
        self.objects[(bucket, path)] = data
        return path

    async def download(self, bucket, path):
        return self.objects.get((bucket, path))

    async def create_signed_url(self, bucket, path, ttl_seconds):
        if self.signed_url_error is not None:
            raise self.signed_url_error
        self.signed.append((bucket, path, ttl_seconds))
        return f"https://signed.example.com/{bucket}/{path}?ttl={ttl_seconds}"

    async def remove(self, bucket, paths):
        for p in paths:
            self.objects.pop((bucket, p), None)


class FakeVendors:
    def __init__(self, records: list[VendorRecord] | None = None, error: Exception | None = None):
        self.records = list(records or [])
        self.error = error
        self.lookups: list[str] = []

    async def find_by_name(self, vendor_name: str):
        self.lookups.append(vendor_name)
        if self.error is not None:
            raise self.error
        for record in self.records:
            if record.vendor_name == vendor_name:
                return record
        return None


class FakePublisher:
    def __init__(self):
        self.published: list[tuple[str, dict]] = []

    async def publish(self, topic: str, message: dict) -> NotifyResult:
        self.published.append((topic, message))
        return NotifyResult(delivered=True, topic=topic, idempotency=message.get("idempotency"))


class FakeConnection:
    """Records asyncpg calls; `error` makes every call raise it."""

    def __init__(
        self,
        fetchval_result: Any = None,
        rows: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
    ):
        self.fetchval_result = fetchval_result
        self.rows = rows or []
        self.error = error
        self.calls: list[tuple[str, str, tuple]] = []
        self.transactions = 0

    def _record(self, kind: str, query: str, args: tuple) -> None:
        if self.error is not None:
            raise self.error
        self.calls.append((kind, " ".join(query.split()), args))

    async def execute(self, query: str, *args: Any) -> str:
        self._record("execute", query, args)
        return "OK"

    async def executemany(self, query: str, rows: list[tuple]) -> None:
        self._record("executemany", query, (list(rows),))

    async def fetchval(self, query: str, *args: Any) -> Any:
        self._record("fetchval", query, args)
        return self.fetchval_result

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any] | None:
        self._record("fetchrow", query, args)
        return self.rows[0] if self.rows else None

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        self._record("fetch", query, args)
        return self.rows

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield


class FakePool:
    def __init__(self, conn: FakeConnection | None = None):
        self.conn = conn or FakeConnection()
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic clock in seconds that only moves when `sleep` is awaited."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def form_fields(request: httpx.Request) -> dict[str, str]:
    """Decode urlencoded or multipart text fields of a captured request."""
    content_type = request.headers.get("content-type", "")
    body = request.content
    if content_type.startswith("application/x-www-form-urlencoded"):
        parsed = httpx.QueryParams(body.decode())
        return dict(parsed.items())
    fields: dict[str, str] = {}
    boundary = content_type.split("boundary=")[-1].encode()
    for part in body.split(b"--" + boundary):
        if b'name="' not in part:
            continue
        header, _, value = part.partition(b"\r\n\r\n")
        name = header.split(b'name="')[1].split(b'"')[0].decode()
        if b"filename=" in header:
            continue
        fields[name] = value.rstrip(b"\r\n").decode()
    return fields


def klearstack_handler(
    status_bodies: list[tuple[int, Any]] | None = None,
    token_status: int = 200,
    refresh_status: int = 200,
    upload: tuple[int, Any] = (200, {"OCR_ref_no": "BATCH-1", "status": "queued"}),
    calls: list[httpx.Request] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler emulating the four provider endpoints.

    `status_bodies` is consumed one entry per batch status call; the last
    entry repeats once the list is exhausted.
    """
    status_queue = list(status_bodies or [(200, {"extraction_status": "processing"})])

    def _response(status: int, body: Any) -> httpx.Response:
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, text=json.dumps(body))

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        path = request.url.path
        if path.endswith("/get_access_token"):
            if token_status != 200:
                return httpx.Response(token_status, text="bad credentials")
            return _response(200, {"access_token": "issued-at", "refresh_token": "issued-rt"})
        if path.endswith("/getaccesstokenfromrefreshtoken"):
            if refresh_status != 200:
                return httpx.Response(refresh_status, text="refresh rejected")
            return _response(200, {"access_token": "fresh-at", "refresh_token": "fresh-rt"})
        if path.endswith("/processdocument"):
            return _response(*upload)
        if path.endswith("/getbatchdocuments"):
            entry = status_queue.pop(0) if len(status_queue) > 1 else status_queue[0]
            return _response(*entry)
        return httpx.Response(404, text="not found")

    return handler


def make_klear_client(handler: Callable[[httpx.Request], httpx.Response]) -> KlearStackHttpClient:
    return KlearStackHttpClient(
        base_url=KLEAR_BASE,
        username="user",
        password="secret-pw",
        company_name="acme",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def kv() -> FakeKV:
    return FakeKV()


@pytest.fixture
def audit() -> FakeAudit:
    return FakeAudit()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
