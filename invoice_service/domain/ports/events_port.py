"""EventPublisherPort protocol for fire-and-forget notifications."""

from __future__ import annotations

from typing import Any, Protocol

from invoice_service.domain.models import NotifyResult


class EventPublisherPort(Protocol):
    async def publish(self, topic: str, message: dict[str, Any]) -> NotifyResult:
        """Never raises: failures are reported through NotifyResult."""
        ...
