"""Best-effort ingest notification, run after the primary response is sent."""

from __future__ import annotations

import logging

from fastapi import BackgroundTasks

from invoice_service.domain.models import NotifyResult
from invoice_service.domain.ports.events_port import EventPublisherPort
from invoice_service.infrastructure.events.kafka_rest_publisher import build_invoice_event

logger = logging.getLogger(__name__)


async def publish_ingest_event(
    publisher: EventPublisherPort,
    topic: str,
    invoice_id: str,
    vendor_id: str | None,
    storage_path: str,
    original_name: str,
) -> NotifyResult:
    message = build_invoice_event(invoice_id, vendor_id, storage_path, original_name)
    result = await publisher.publish(topic, message)
    if not result.delivered:
        logger.warning(
            f"Ingest event not delivered: {result.error}",
            extra={"submission_id": invoice_id, "topic": topic},
        )
    return result


def enqueue_ingest_event(
    background_tasks: BackgroundTasks,
    publisher: EventPublisherPort,
    topic: str,
    invoice_id: str,
    vendor_id: str | None,
    storage_path: str,
    original_name: str,
) -> None:
    background_tasks.add_task(
        publish_ingest_event,
        publisher,
        topic,
        invoice_id,
        vendor_id,
        storage_path,
        original_name,
    )
