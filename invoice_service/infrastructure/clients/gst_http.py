"""HTTP client adapter for the GST taxpayer status API."""

from __future__ import annotations

import httpx


class GstHttpClient:
    """GET {url}?gstin=... with an `apikey` header."""

    def __init__(
        self,
        url: str,
        api_key: str | None,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def api_key_configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport)

    async def search(self, gstin: str) -> httpx.Response:
        if not self._api_key:
            raise RuntimeError("GST API key is not configured")
        async with self._client() as client:
            return await client.get(
                self._url,
                params={"gstin": gstin},
                headers={"Accept": "application/json", "apikey": self._api_key},
            )
