"""Fire-and-forget event publisher over a Kafka REST proxy."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx

from invoice_service.core.config import Settings
from invoice_service.domain.models import NotifyResult
from invoice_service.utils.timing import utc_now_iso

logger = logging.getLogger(__name__)

KAFKA_JSON_CONTENT_TYPE = "application/vnd.kafka.json.v2+json"


def build_invoice_event(
    invoice_id: str,
    vendor_id: str | None,
    storage_path: str,
    original_name: str,
) -> dict[str, Any]:
    """Ingest event with a fresh idempotency key and ISO-8601 timestamp."""
    return {
        "invoice_id": invoice_id,
        "vendor_id": vendor_id,
        "storage_path": storage_path or "",
        "original": original_name,
        "idempotency": str(uuid.uuid4()),
        "ts": utc_now_iso(),
    }


class KafkaRestPublisher:
    """POST {base_url}/topics/{topic} with a single JSON record.

    `publish` never raises; every failure is logged and returned as an
    undelivered NotifyResult.
    """

    def __init__(
        self,
        base_url: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def publish(self, topic: str, message: dict[str, Any]) -> NotifyResult:
        idempotency = message.get("idempotency")
        if not self.enabled:
            logger.info("Event sink disabled, dropping event", extra={"topic": topic})
            return NotifyResult(delivered=False, topic=topic, idempotency=idempotency, error="disabled")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/topics/{topic}",
                    json={"records": [{"value": message}]},
                    headers={
                        "Content-Type": KAFKA_JSON_CONTENT_TYPE,
                        "Accept": "application/vnd.kafka.v2+json, application/json",
                    },
                )
                response.raise_for_status()
            logger.info("Event published", extra={"topic": topic, "http_status": response.status_code})
            return NotifyResult(delivered=True, topic=topic, idempotency=idempotency)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Event publish HTTP error: {e.response.status_code} - {e.response.text}",
                extra={"topic": topic},
            )
            return NotifyResult(
                delivered=False,
                topic=topic,
                idempotency=idempotency,
                error=f"http_{e.response.status_code}",
            )
        except Exception as e:
            logger.error(f"Event publish failed: {e}", extra={"topic": topic})
            return NotifyResult(delivered=False, topic=topic, idempotency=idempotency, error=str(e))


def create_event_publisher(settings: Settings) -> KafkaRestPublisher:
    return KafkaRestPublisher(
        base_url=settings.EVENTS_REST_URL,
        timeout=settings.EVENTS_TIMEOUT_SECONDS,
    )
