from __future__ import annotations

import asyncio

import httpx
import pytest

from invoice_service.application.poller import ExtractionPoller
from invoice_service.application.token_manager import TokenManager
from invoice_service.core.exceptions import BatchNotFoundError, BatchOwnershipError, StatusCheckError
from invoice_service.domain.models import ExtractionStatus

from conftest import FakeKV, form_fields, klearstack_handler, make_klear_client


def build_poller(handler, audit, clock, kv=None, interval_ms=5000):
    client = make_klear_client(handler)
    if kv is None:
        kv = FakeKV({"klearstack_batch:sub-1": {"batch_id": "B1", "submission_id": "sub-1"}})
    return ExtractionPoller(
        tokens=TokenManager(client),
        client=client,
        kv=kv,
        audit=audit,
        poll_interval_ms=interval_ms,
        sleep=clock.sleep,
        clock=clock,
    )


def status_calls(calls: list[httpx.Request]) -> list[httpx.Request]:
    return [c for c in calls if c.url.path.endswith("/getbatchdocuments")]


@pytest.mark.asyncio
async def test_zero_budget_times_out_without_status_call(audit, clock):
    calls: list[httpx.Request] = []
    poller = build_poller(klearstack_handler(calls=calls), audit, clock)

    result = await poller.poll_until_complete("sub-1", "B1", max_duration_ms=0)

    assert result.status == "timeout"
    assert result.attempts == 0
    assert status_calls(calls) == []
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_polls_until_complete_and_stores_results(audit, clock):
    calls: list[httpx.Request] = []
    completed = {"extraction_status": "Completed", "results": [{"invoice_no": "INV-7"}]}
    handler = klearstack_handler(
        status_bodies=[(200, {"status": "processing"}), (200, {"status": "pending"}), (200, completed)],
        calls=calls,
    )
    kv = FakeKV({"klearstack_batch:sub-1": {"batch_id": "B1"}})
    poller = build_poller(handler, audit, clock, kv=kv)

    result = await poller.poll_until_complete("sub-1", "B1", max_duration_ms=60000)

    assert result.status == "complete"
    assert result.attempts == 3
    assert result.data == [{"invoice_no": "INV-7"}]
    assert clock.sleeps == [5.0, 5.0]
    assert result.duration_ms == 10000
    stored = kv.data["klearstack_extracted:sub-1"]
    assert stored["batch_id"] == "B1"
    assert stored["document_data"] == {"invoice_no": "INV-7"}
    assert stored["full_response"] == completed


@pytest.mark.asyncio
async def test_token_is_reacquired_every_attempt(audit, clock):
    calls: list[httpx.Request] = []
    handler = klearstack_handler(
        status_bodies=[(200, {"status": "processing"}), (200, {"status": "completed"})],
        calls=calls,
    )
    poller = build_poller(handler, audit, clock)

    await poller.poll_until_complete("sub-1", "B1", max_duration_ms=60000)

    paths = [c.url.path.rsplit("/", 1)[-1] for c in calls]
    assert paths == [
        "get_access_token",
        "getaccesstokenfromrefreshtoken",
        "getbatchdocuments",
        "get_access_token",
        "getaccesstokenfromrefreshtoken",
        "getbatchdocuments",
    ]
    batch_request = status_calls(calls)[0]
    assert batch_request.headers["Authorization"] == "Bearer fresh-at"
    assert form_fields(batch_request)["batch_id"] == "B1"


@pytest.mark.asyncio
async def test_failed_status_is_terminal(audit, clock):
    handler = klearstack_handler(status_bodies=[(200, {"extractionStatus": "ERROR", "message": "unreadable"})])
    poller = build_poller(handler, audit, clock)

    result = await poller.poll_until_complete("sub-1", "B1", max_duration_ms=60000)

    assert result.status == "failed"
    assert result.attempts == 1
    assert result.error == "unreadable"
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_http_failures_are_absorbed_until_timeout(audit, clock):
    handler = klearstack_handler(status_bodies=[(503, "upstream down")])
    poller = build_poller(handler, audit, clock)

    result = await poller.poll_until_complete("sub-1", "B1", max_duration_ms=12000)

    assert result.status == "timeout"
    assert result.attempts == 3
    assert clock.sleeps == [5.0, 5.0, 2.0]
    assert result.duration_ms == 12000
    assert all(row["status_code"] == 503 for row in audit.rows)
    assert [row["request_payload"]["attempt"] for row in audit.rows] == [1, 2, 3]


@pytest.mark.asyncio
async def test_token_failures_are_absorbed(audit, clock):
    calls: list[httpx.Request] = []
    poller = build_poller(klearstack_handler(token_status=500, calls=calls), audit, clock)

    result = await poller.poll_until_complete("sub-1", "B1", max_duration_ms=10000)

    assert result.status == "timeout"
    assert result.attempts == 2
    assert status_calls(calls) == []


@pytest.mark.asyncio
async def test_unknown_batch_is_rejected_before_any_provider_call(audit, clock):
    calls: list[httpx.Request] = []
    poller = build_poller(klearstack_handler(calls=calls), audit, clock, kv=FakeKV())

    with pytest.raises(BatchNotFoundError):
        await poller.poll_until_complete("sub-1", "B1", max_duration_ms=1000)
    assert calls == []


@pytest.mark.asyncio
async def test_batch_owned_by_other_submission_is_rejected(audit, clock):
    poller = build_poller(klearstack_handler(), audit, clock)

    with pytest.raises(BatchOwnershipError) as exc_info:
        await poller.check_status_once("sub-1", "B-OTHER")
    assert exc_info.value.http_status == 409


@pytest.mark.asyncio
async def test_check_status_once_classifies(audit, clock):
    handler = klearstack_handler(status_bodies=[(200, 'noise {"status": "In Progress"}')])
    poller = build_poller(handler, audit, clock)

    check = await poller.check_status_once("sub-1", "B1")

    assert check.status is ExtractionStatus.PROCESSING
    assert check.raw_status == "In Progress"
    assert audit.steps() == ["step4_batch"]
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_check_status_once_surfaces_provider_error(audit, clock):
    poller = build_poller(klearstack_handler(status_bodies=[(429, "slow down")]), audit, clock)

    with pytest.raises(StatusCheckError) as exc_info:
        await poller.check_status_once("sub-1", "B1")
    assert exc_info.value.http_status == 429
    assert exc_info.value.details["provider_body"] == "slow down"


@pytest.mark.asyncio
async def test_hung_status_call_is_cut_off_at_the_deadline(audit, clock):
    provider = klearstack_handler()

    async def hanging(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/getbatchdocuments"):
            await asyncio.sleep(30)
        return provider(request)

    poller = build_poller(hanging, audit, clock)

    result = await asyncio.wait_for(poller.poll_until_complete("sub-1", "B1", max_duration_ms=50), timeout=5)

    assert result.status == "timeout"
    assert result.attempts == 1
    assert clock.sleeps == []
