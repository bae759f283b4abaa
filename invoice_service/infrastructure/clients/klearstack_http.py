"""HTTP client adapter for the KlearStack OCR provider.

Endpoints, relative to the configured base URL:
- POST /get_access_token                 form-encoded credentials
- POST /getaccesstokenfromrefreshtoken   form-encoded refresh token + bearer
- POST /processdocument                  multipart file + fields + bearer
- POST /getbatchdocuments                multipart fields + bearer

The adapter only performs transport. It returns the fully-read response and
leaves status interpretation, parsing and auditing to the application layer.
"""

from __future__ import annotations

import httpx

TOKEN_PATH = "/get_access_token"
REFRESH_PATH = "/getaccesstokenfromrefreshtoken"
PROCESS_PATH = "/processdocument"
BATCH_PATH = "/getbatchdocuments"


class KlearStackHttpClient:
    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        company_name: str,
        document_type: str = "Invoices",
        processing_pref: str = "Accuracy",
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self.company_name = company_name
        self.document_type = document_type
        self.processing_pref = processing_pref
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def username(self) -> str:
        return self._username

    def url_for(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _client(self) -> httpx.AsyncClient:
        if not self._base_url:
            raise RuntimeError("KlearStack base_url is not configured")
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout_seconds,
            transport=self._transport,
        )

    async def get_access_token(self) -> httpx.Response:
        data = {
            "username": self._username,
            "password": self._password,
            "company_name": self.company_name,
        }
        async with self._client() as client:
            return await client.post(TOKEN_PATH, data=data)

    async def refresh_access_token(self, access_token: str, refresh_token: str) -> httpx.Response:
        data = {"refresh_token": refresh_token, "company_name": self.company_name}
        async with self._client() as client:
            return await client.post(
                REFRESH_PATH,
                data=data,
                headers={"Authorization": f"Bearer {access_token}"},
            )

    async def process_document(
        self,
        access_token: str,
        content: bytes,
        file_name: str,
        content_type: str = "application/pdf",
    ) -> httpx.Response:
        data = {
            "company_name": self.company_name,
            "username": self._username,
            "password": self._password,
            "document_type": self.document_type,
            "processing_pref": self.processing_pref,
            "verify": "False",
        }
        files = {"file": (file_name, content, content_type)}
        async with self._client() as client:
            return await client.post(
                PROCESS_PATH,
                data=data,
                files=files,
                headers={"Authorization": f"Bearer {access_token}"},
            )

    async def get_batch_documents(self, access_token: str, batch_id: str) -> httpx.Response:
        fields = {
            "company_name": self.company_name,
            "username": self._username,
            "password": self._password,
            "document_type": self.document_type,
            "batch_id": batch_id,
        }
        # (None, value) parts force multipart/form-data without a file
        files = {key: (None, value) for key, value in fields.items()}
        async with self._client() as client:
            return await client.post(
                BATCH_PATH,
                files=files,
                headers={"Authorization": f"Bearer {access_token}"},
            )
