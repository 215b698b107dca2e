"""HTTP client for the photo tagger API, used by the client store."""

from dataclasses import dataclass

import httpx

from photo_tagger.client.store import PhotoApi, SearchResponse
from photo_tagger.domain.photos import Photo
from photo_tagger.domain.tags import FilterCriteria, NewTag, PhotoTag, TagPatch
from photo_tagger.errors import BackendUnavailable, NotFound, ValidationError


@dataclass
class HttpxPhotoApi(PhotoApi):
    """HTTPX-backed client for the tag and photo endpoints."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15.0

    @classmethod
    def create(cls, base_url: str, timeout: float = 15.0) -> "HttpxPhotoApi":
        """Create an API client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def list_folder(self, folder_id: str) -> list[Photo]:
        photos: list[Photo] = []
        page_token: str | None = None
        while True:
            data = await self._request(
                "POST",
                "/photos/fetch",
                json={
                    "folderId": folder_id,
                    "pageToken": page_token,
                    "includeFolders": True,
                },
            )
            photos.extend(Photo.from_dict(item) for item in data.get("photos") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                return photos

    async def get_tags(self, photo_id: str) -> list[PhotoTag]:
        data = await self._request("GET", "/tags", params={"photoId": photo_id})
        return [PhotoTag.from_row(row) for row in data.get("tags") or []]

    async def add_tag(self, photo_id: str, tag: NewTag) -> str:
        data = await self._request(
            "POST", "/tags", json={"photoId": photo_id, "tag": tag.to_dict()}
        )
        return str(data["tagId"])

    async def update_tag(self, tag_id: str, patch: TagPatch) -> bool:
        data = await self._request(
            "PUT", "/tags", json={"tagId": tag_id, "tag": patch.to_dict()}
        )
        return bool(data.get("updated", True))

    async def delete_tag(self, tag_id: str) -> None:
        await self._request("DELETE", "/tags", params={"tagId": tag_id})

    async def search(self, criteria: FilterCriteria) -> SearchResponse:
        data = await self._request(
            "POST", "/photos/search", json={"criteria": criteria.to_dict()}
        )
        return SearchResponse(
            photos=[Photo.from_dict(item) for item in data.get("photos") or []],
            mode=str(data.get("mode") or "server"),
            backend_available=bool(data.get("backendAvailable", True)),
            failed_photo_ids=[str(item) for item in data.get("failedPhotoIds") or []],
        )

    async def delete_photo(self, photo_id: str) -> bool:
        data = await self._request(
            "POST", "/photos/delete", json={"photoId": photo_id}
        )
        return bool(data.get("tagsDeleted", True))

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(self, method: str, path: str, **kwargs: object) -> dict:
        try:
            response = await self.http_client.request(
                method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
            )
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            message = _error_message(response)
            if response.status_code == httpx.codes.BAD_REQUEST:
                raise ValidationError(message)
            if response.status_code == httpx.codes.NOT_FOUND:
                raise NotFound(message)
            raise BackendUnavailable(message)
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"{response.status_code} - {response.text}"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"{response.status_code} - {response.text}"
