"""HTTP client adapter for the QR decoding API."""

from __future__ import annotations

import httpx


class QrHttpClient:
    def __init__(
        self,
        url: str,
        token: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._token = token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._url)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    async def extract(self, file_url: str) -> httpx.Response:
        """POST {file_path} and return the read response.

        The `async with` block closes the connection when the surrounding task
        is cancelled, so a tripped deadline aborts the in-flight request.
        """
        async with self._client() as client:
            return await client.post(
                self._url,
                json={"file_path": file_url},
                headers={"Authorization": f"Bearer {self._token}"},
            )
