"""Turso (libSQL) SQL-over-HTTP client."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from photo_tagger.errors import BackendUnavailable

_logger = logging.getLogger(__name__)

Statement = tuple[str, list[object]]


class TursoClient(Protocol):
    """Interface for executing SQL against a remote database."""

    async def execute(
        self, query: str, params: list[object] | None = None
    ) -> list[dict[str, object]]:
        """Run one statement and return its rows as dicts."""

    async def execute_batch(
        self, statements: list[Statement]
    ) -> list[list[dict[str, object]]]:
        """Run several statements in one request and return rows per statement."""


@dataclass
class HttpxTursoClient(TursoClient):
    """Turso client speaking the HTTP ``statements`` API through httpx."""

    url: str
    auth_token: str
    http_client: httpx.AsyncClient
    timeout: float = 15.0

    @classmethod
    def create(
        cls, url: str, auth_token: str, timeout: float = 15.0
    ) -> "HttpxTursoClient":
        """Create a Turso client with a managed httpx session."""
        return cls(
            url=url,
            auth_token=auth_token,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def execute(
        self, query: str, params: list[object] | None = None
    ) -> list[dict[str, object]]:
        """Run one statement and return its rows."""
        results = await self.execute_batch([(query, params or [])])
        return results[0] if results else []

    async def execute_batch(
        self, statements: list[Statement]
    ) -> list[list[dict[str, object]]]:
        """Run statements and map each result's columns onto its rows."""
        payload = {
            "statements": [{"q": query, "params": params} for query, params in statements]
        }
        try:
            response = await self.http_client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {self.auth_token}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Turso request failed: {exc}") from exc
        if response.is_error:
            raise BackendUnavailable(
                f"Turso query failed: {response.status_code} - {response.text}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise BackendUnavailable(
                f"Turso returned a malformed response: {response.status_code}"
            ) from exc
        if isinstance(data, dict):
            if data.get("error"):
                raise BackendUnavailable(str(data["error"]))
            return []
        if not isinstance(data, list):
            raise BackendUnavailable("Turso returned an unexpected response body")
        return [_parse_result(entry) for entry in data]

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _parse_result(entry: dict[str, object]) -> list[dict[str, object]]:
    """Turn a ``{columns, rows}`` result into row dicts."""
    if not isinstance(entry, dict):
        raise BackendUnavailable("Turso returned an unexpected result entry")
    error = entry.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise BackendUnavailable(message or "Query execution failed")
    result = entry.get("results")
    if not isinstance(result, dict):
        return []
    columns = result.get("columns") or []
    rows = result.get("rows") or []
    return [dict(zip(columns, row, strict=False)) for row in rows]
