"""VendorDirectoryPort protocol over the vendor reference table."""

from __future__ import annotations

from typing import Protocol

from invoice_service.domain.models import VendorRecord


class VendorDirectoryPort(Protocol):
    async def find_by_name(self, vendor_name: str) -> VendorRecord | None:
        """Exact-name lookup; first match wins when duplicates exist."""
        ...
