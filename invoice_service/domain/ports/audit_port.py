"""AuditTrailPort protocol: one row per provider step."""

from __future__ import annotations

from typing import Any, Protocol


class AuditTrailPort(Protocol):
    async def record(
        self,
        submission_id: str,
        step: str,
        request_payload: dict[str, Any],
        response_payload: Any,
        status_code: int,
        error_message: str | None = None,
    ) -> bool:
        """Persist a step; returns False instead of raising on failure."""
        ...
