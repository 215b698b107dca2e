"""Google Drive v3 REST client."""

import asyncio
import json
import secrets
from dataclasses import dataclass, field
from typing import Protocol

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from photo_tagger.errors import BackendUnavailable, NotFound

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"


class TokenProvider(Protocol):
    """Supplies OAuth bearer tokens for Drive requests."""

    async def token(self) -> str:
        """Return a valid access token."""


@dataclass
class ServiceAccountTokenProvider(TokenProvider):
    """Token provider backed by google-auth service account credentials."""

    credentials: service_account.Credentials
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @classmethod
    def from_info(cls, info: dict[str, object]) -> "ServiceAccountTokenProvider":
        """Build a provider from a decoded service account key."""
        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=[DRIVE_SCOPE]
        )
        return cls(credentials=credentials)

    async def token(self) -> str:
        """Return the cached token, refreshing it when expired."""
        async with self._lock:
            if not self.credentials.valid:
                try:
                    await asyncio.to_thread(
                        self.credentials.refresh, GoogleAuthRequest()
                    )
                except GoogleAuthError as exc:
                    raise BackendUnavailable(
                        f"Drive token refresh failed: {exc}"
                    ) from exc
            return str(self.credentials.token)


class DriveClient(Protocol):
    """Interface for Drive file operations."""

    async def list_files(
        self, query: str, fields: str, page_size: int, page_token: str | None = None
    ) -> dict[str, object]:
        """Return a raw ``files.list`` response."""

    async def get_file(self, file_id: str, fields: str) -> dict[str, object]:
        """Return a raw ``files.get`` response."""

    async def download_file(self, file_id: str) -> tuple[bytes, str | None]:
        """Return the media bytes of a file and their content type."""

    async def create_file(
        self,
        metadata: dict[str, object],
        content: bytes,
        mime_type: str,
        fields: str,
    ) -> dict[str, object]:
        """Upload a new file with metadata and return the raw response."""

    async def update_file(
        self, file_id: str, body: dict[str, object], fields: str = "id"
    ) -> dict[str, object]:
        """Patch file metadata."""

    async def delete_file(self, file_id: str) -> None:
        """Delete a file."""


@dataclass
class HttpxDriveClient(DriveClient):
    """Drive client implemented with httpx."""

    token_provider: TokenProvider
    http_client: httpx.AsyncClient
    timeout: float = 15.0
    api_url: str = DRIVE_API_URL
    upload_url: str = DRIVE_UPLOAD_URL

    @classmethod
    def create(
        cls, token_provider: TokenProvider, timeout: float = 15.0
    ) -> "HttpxDriveClient":
        """Create a Drive client with a managed httpx session."""
        return cls(
            token_provider=token_provider,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def list_files(
        self, query: str, fields: str, page_size: int, page_token: str | None = None
    ) -> dict[str, object]:
        """List files matching a Drive query."""
        params: dict[str, object] = {
            "q": query,
            "spaces": "drive",
            "fields": fields,
            "pageSize": page_size,
        }
        if page_token:
            params["pageToken"] = page_token
        response = await self._request("GET", f"{self.api_url}/files", params=params)
        return _json_body(response)

    async def get_file(self, file_id: str, fields: str) -> dict[str, object]:
        response = await self._request(
            "GET", f"{self.api_url}/files/{file_id}", params={"fields": fields}
        )
        return _json_body(response)

    async def download_file(self, file_id: str) -> tuple[bytes, str | None]:
        response = await self._request(
            "GET", f"{self.api_url}/files/{file_id}", params={"alt": "media"}
        )
        return response.content, response.headers.get("Content-Type")

    async def create_file(
        self,
        metadata: dict[str, object],
        content: bytes,
        mime_type: str,
        fields: str,
    ) -> dict[str, object]:
        """Upload using a ``multipart/related`` request."""
        boundary = f"photo_tagger_{secrets.token_hex(12)}"
        body = build_multipart_related(boundary, metadata, content, mime_type)
        response = await self._request(
            "POST",
            f"{self.upload_url}/files",
            params={"uploadType": "multipart", "fields": fields},
            content=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        return _json_body(response)

    async def update_file(
        self, file_id: str, body: dict[str, object], fields: str = "id"
    ) -> dict[str, object]:
        response = await self._request(
            "PATCH",
            f"{self.api_url}/files/{file_id}",
            params={"fields": fields},
            json=body,
        )
        return _json_body(response)

    async def delete_file(self, file_id: str) -> None:
        await self._request("DELETE", f"{self.api_url}/files/{file_id}")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: object,
    ) -> httpx.Response:
        token = await self.token_provider.token()
        request_headers = {"Authorization": f"Bearer {token}", **(headers or {})}
        try:
            response = await self.http_client.request(
                method, url, headers=request_headers, timeout=self.timeout, **kwargs
            )
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Drive request failed: {exc}") from exc
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFound(f"Drive file not found: {url.rsplit('/', 1)[-1]}")
        if response.is_error:
            raise BackendUnavailable(
                f"Drive request failed: {response.status_code} - {response.text}"
            )
        return response


def build_multipart_related(
    boundary: str, metadata: dict[str, object], content: bytes, mime_type: str
) -> bytes:
    """Build a Drive multipart upload body: JSON metadata then media."""
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {mime_type}\r\n\r\n"
    ).encode()
    return head + content + f"\r\n--{boundary}--\r\n".encode()


def _json_body(response: httpx.Response) -> dict[str, object]:
    try:
        data = response.json()
    except ValueError as exc:
        raise BackendUnavailable(
            f"Drive returned a malformed response: {response.status_code}"
        ) from exc
    if not isinstance(data, dict):
        raise BackendUnavailable("Drive returned an unexpected response body")
    return data
