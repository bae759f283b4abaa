"""PostgreSQL repositories backing the vendor, audit and key-value ports.

Tables:
    vendor_master(vendor_id, vendor_name, gst_number, ...)
    klear_responses(id, submission_id, step, request_payload jsonb,
                    response_payload jsonb, status_code, error_message, created_at)
    kv_store(key text primary key, value jsonb)
"""

from __future__ import annotations

import json
import logging
from typing import Any

from invoice_service.domain.models import VendorRecord
from invoice_service.infrastructure.database.manager import DatabaseManager
from invoice_service.utils.masking import mask_secrets

logger = logging.getLogger(__name__)


def _decode(value: Any) -> Any:
    # asyncpg returns jsonb as text unless a codec is registered
    if isinstance(value, str):
        return json.loads(value)
    return value


class VendorRepository:
    def __init__(self, db_manager: DatabaseManager, table: str = "vendor_master"):
        self._db = db_manager
        self._table = table

    async def find_by_name(self, vendor_name: str) -> VendorRecord | None:
        pool = await self._db.get_pool()
        query = (
            f"SELECT vendor_id, vendor_name, gst_number FROM {self._table} "
            "WHERE vendor_name = $1 LIMIT 1"
        )
        async with pool.acquire() as conn:
            row = await conn.fetchrow(query, vendor_name)
        if row is None:
            return None
        return VendorRecord(
            vendor_id=str(row["vendor_id"]) if row["vendor_id"] is not None else None,
            vendor_name=row["vendor_name"],
            gst_number=row["gst_number"],
        )


class AuditTrailRepository:
    """Best-effort writer for per-step provider responses."""

    def __init__(self, db_manager: DatabaseManager, table: str = "klear_responses"):
        self._db = db_manager
        self._table = table

    async def record(
        self,
        submission_id: str,
        step: str,
        request_payload: dict[str, Any],
        response_payload: Any,
        status_code: int,
        error_message: str | None = None,
    ) -> bool:
        query = f"""
            INSERT INTO {self._table} (
                submission_id, step, request_payload, response_payload,
                status_code, error_message
            ) VALUES ($1, $2, $3::jsonb, $4::jsonb, $5, $6)
        """
        try:
            pool = await self._db.get_pool()
            async with pool.acquire() as conn:
                await conn.execute(
                    query,
                    submission_id,
                    step,
                    json.dumps(mask_secrets(request_payload), default=str),
                    json.dumps(response_payload, default=str),
                    status_code,
                    error_message,
                )
            return True
        except Exception as e:
            logger.warning(
                f"Audit write failed: {e}",
                extra={"submission_id": submission_id, "step": step},
            )
            return False


class PostgresKeyValueStore:
    """jsonb key-value store; `set` is an upsert, last write wins."""

    def __init__(self, db_manager: DatabaseManager, table: str = "kv_store"):
        self._db = db_manager
        self._table = table

    async def get(self, key: str) -> Any:
        pool = await self._db.get_pool()
        async with pool.acquire() as conn:
            value = await conn.fetchval(f"SELECT value FROM {self._table} WHERE key = $1", key)
        return _decode(value)

    async def set(self, key: str, value: Any) -> None:
        query = f"""
            INSERT INTO {self._table} (key, value) VALUES ($1, $2::jsonb)
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
        """
        pool = await self._db.get_pool()
        async with pool.acquire() as conn:
            await conn.execute(query, key, json.dumps(value, default=str))

    async def mset(self, keys: list[str], values: list[Any]) -> None:
        if len(keys) != len(values):
            raise ValueError("keys and values must have the same length")
        query = f"""
            INSERT INTO {self._table} (key, value) VALUES ($1, $2::jsonb)
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
        """
        rows = [(k, json.dumps(v, default=str)) for k, v in zip(keys, values)]
        pool = await self._db.get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(query, rows)

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pool = await self._db.get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT value FROM {self._table} WHERE key LIKE $1 ORDER BY key",
                escaped + "%",
            )
        return [_decode(row["value"]) for row in rows]

    async def delete(self, key: str) -> None:
        pool = await self._db.get_pool()
        async with pool.acquire() as conn:
            await conn.execute(f"DELETE FROM {self._table} WHERE key = $1", key)
