"""Tests for the Drive client and photo repository."""

import asyncio
import json

import httpx
import pytest
from google.auth.exceptions import RefreshError

from photo_tagger.adapters.drive_client import (
    HttpxDriveClient,
    ServiceAccountTokenProvider,
    build_multipart_related,
)
from photo_tagger.adapters.drive_photo_repository import (
    DrivePhotoRepository,
    folder_query,
)
from photo_tagger.domain.photos import PhotoMetadata
from photo_tagger.domain.tags import FilterCriteria
from photo_tagger.errors import BackendUnavailable, ConfigurationMissing, NotFound
from photo_tagger.services.search import SearchService
from tests.conftest import InMemoryTagRepository, make_tag


class _StaticTokenProvider:
    async def token(self) -> str:
        return "drive-token"


class _FakeDrive:
    """Minimal stand-in for the Drive v3 REST API."""

    def __init__(self) -> None:
        self.files: dict[str, dict[str, object]] = {}
        self.requests: list[httpx.Request] = []
        self.pages: list[dict[str, object]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert request.headers["Authorization"] == "Bearer drive-token"
        path = request.url.path
        if path.startswith("/upload/drive/v3/files"):
            return self._upload(request)
        if path == "/drive/v3/files":
            if self.pages:
                return httpx.Response(200, json=self.pages.pop(0))
            return httpx.Response(200, json={"files": list(self.files.values())})
        file_id = path.rsplit("/", 1)[-1]
        if file_id not in self.files:
            return httpx.Response(404, json={"error": {"code": 404}})
        if request.method == "DELETE":
            del self.files[file_id]
            return httpx.Response(204)
        if request.method == "PATCH":
            self.files[file_id].update(json.loads(request.content.decode()))
            return httpx.Response(200, json={"id": file_id})
        if request.url.params.get("alt") == "media":
            return httpx.Response(
                200,
                content=b"jpeg-bytes",
                headers={"Content-Type": str(self.files[file_id]["mimeType"])},
            )
        return httpx.Response(200, json=self.files[file_id])

    def _upload(self, request: httpx.Request) -> httpx.Response:
        assert request.url.params["uploadType"] == "multipart"
        boundary = request.headers["Content-Type"].split("boundary=")[1]
        parts = request.content.split(f"--{boundary}".encode())
        metadata_part = parts[1].split(b"\r\n\r\n", 1)[1].strip()
        metadata = json.loads(metadata_part.decode())
        file_id = f"file-{len(self.files) + 1}"
        self.files[file_id] = {
            "id": file_id,
            "mimeType": "image/jpeg",
            "webViewLink": f"https://drive.example/{file_id}",
            **metadata,
        }
        return httpx.Response(
            200,
            json={
                "id": file_id,
                "name": metadata["name"],
                "webViewLink": f"https://drive.example/{file_id}",
            },
        )


def _repository(drive: _FakeDrive, page_size: int = 100) -> DrivePhotoRepository:
    client = HttpxDriveClient(
        token_provider=_StaticTokenProvider(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(drive.handler)),
    )
    return DrivePhotoRepository(client, page_size=page_size)


def test_folder_query_excludes_trashed_and_quotes_id() -> None:
    query = folder_query("abc'def")

    assert query.startswith("'abc\\'def' in parents")
    assert "mimeType contains 'image/'" in query
    assert query.endswith("trashed = false")
    assert "application/vnd.google-apps.folder" in folder_query("x", True)


def test_upload_then_read_round_trips_metadata() -> None:
    drive = _FakeDrive()
    repository = _repository(drive)
    metadata = PhotoMetadata(
        record_id="R1", species="Yellow Warbler", age="AHY", sex="M", notes="molt"
    )

    result = asyncio.run(
        repository.upload_photo(b"jpeg-bytes", "bird.jpg", "folder-1", metadata)
    )
    stored = asyncio.run(repository.get_photo_metadata(result.id))

    assert result.web_view_link == f"https://drive.example/{result.id}"
    assert stored.metadata == metadata
    assert stored.image_url == f"/photos/thumbnail/{result.id}"
    assert drive.files[result.id]["parents"] == ["folder-1"]
    assert drive.files[result.id]["properties"]["species"] == "Yellow Warbler"


def test_list_photos_returns_next_page_token() -> None:
    drive = _FakeDrive()
    drive.pages = [
        {
            "files": [{"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}],
            "nextPageToken": "page-2",
        },
        {"files": [{"id": "b", "name": "b.jpg", "mimeType": "image/jpeg"}]},
    ]
    repository = _repository(drive, page_size=1)

    page = asyncio.run(repository.list_photos("folder-1"))

    assert [item.id for item in page.files] == ["a"]
    assert page.next_page_token == "page-2"
    first_params = drive.requests[0].url.params
    assert first_params["pageSize"] == "1"
    assert "trashed = false" in first_params["q"]
    assert "pageToken" not in first_params


def test_list_all_photos_follows_cursors() -> None:
    drive = _FakeDrive()
    drive.pages = [
        {
            "files": [{"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}],
            "nextPageToken": "page-2",
        },
        {"files": [{"id": "b", "name": "b.jpg", "mimeType": "image/jpeg"}]},
    ]
    repository = _repository(drive)

    files = asyncio.run(repository.list_all_photos("folder-1"))

    assert [item.id for item in files] == ["a", "b"]
    assert drive.requests[1].url.params["pageToken"] == "page-2"


def test_unparseable_description_yields_empty_metadata() -> None:
    drive = _FakeDrive()
    drive.files["a"] = {
        "id": "a",
        "name": "a.jpg",
        "mimeType": "image/jpeg",
        "description": "shot at dawn",
    }
    repository = _repository(drive)

    drive_file = asyncio.run(repository.get_photo_metadata("a"))

    assert drive_file.metadata == PhotoMetadata()


def test_update_metadata_rewrites_description() -> None:
    drive = _FakeDrive()
    drive.files["a"] = {"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}
    repository = _repository(drive)

    asyncio.run(
        repository.update_photo_metadata("a", PhotoMetadata(species="Song Sparrow"))
    )

    assert json.loads(drive.files["a"]["description"])["species"] == "Song Sparrow"


def test_missing_file_raises_not_found() -> None:
    repository = _repository(_FakeDrive())

    with pytest.raises(NotFound):
        asyncio.run(repository.get_photo_metadata("missing"))
    with pytest.raises(NotFound):
        asyncio.run(repository.delete_photo("missing"))


def test_delete_and_download() -> None:
    drive = _FakeDrive()
    drive.files["a"] = {"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}
    repository = _repository(drive)

    image = asyncio.run(repository.download_photo("a"))
    asyncio.run(repository.delete_photo("a"))

    assert image.content == b"jpeg-bytes"
    assert image.mime_type == "image/jpeg"
    assert "a" not in drive.files


def test_server_error_raises_backend_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="backend error")

    client = HttpxDriveClient(
        token_provider=_StaticTokenProvider(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(BackendUnavailable):
        asyncio.run(DrivePhotoRepository(client).list_photos("folder-1"))


def test_unconfigured_repository_raises_configuration_missing() -> None:
    repository = DrivePhotoRepository(None)

    assert repository.configured is False
    with pytest.raises(ConfigurationMissing, match="Service account key"):
        asyncio.run(repository.list_photos("folder-1"))


def test_multipart_body_has_metadata_then_media() -> None:
    body = build_multipart_related("b", {"name": "a.jpg"}, b"\xff\xd8", "image/jpeg")

    assert body.startswith(b"--b\r\nContent-Type: application/json")
    assert b'{"name": "a.jpg"}' in body
    assert body.endswith(b"\xff\xd8\r\n--b--\r\n")


def test_download_reports_drive_content_type() -> None:
    drive = _FakeDrive()
    drive.files["a"] = {"id": "a", "name": "a.png", "mimeType": "image/png"}

    image = asyncio.run(_repository(drive).download_photo("a"))

    assert image.mime_type == "image/png"


def test_non_json_body_raises_backend_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy error</html>")

    client = HttpxDriveClient(
        token_provider=_StaticTokenProvider(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(BackendUnavailable, match="malformed"):
        asyncio.run(DrivePhotoRepository(client).get_photo_metadata("a"))


def test_token_refresh_failure_raises_backend_unavailable() -> None:
    class _ExpiredCredentials:
        valid = False
        token = None

        def refresh(self, request: object) -> None:
            raise RefreshError("invalid_grant")

    provider = ServiceAccountTokenProvider(credentials=_ExpiredCredentials())

    with pytest.raises(BackendUnavailable, match="token refresh failed"):
        asyncio.run(provider.token())


def test_search_survives_one_malformed_drive_response() -> None:
    drive = _FakeDrive()
    for file_id in ("p1", "p3"):
        drive.files[file_id] = {
            "id": file_id,
            "name": f"{file_id}.jpg",
            "mimeType": "image/jpeg",
        }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/files/p2"):
            return httpx.Response(200, text="<html>proxy error</html>")
        return drive.handler(request)

    client = HttpxDriveClient(
        token_provider=_StaticTokenProvider(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    tags = InMemoryTagRepository()
    for photo_id in ("p1", "p2", "p3"):
        asyncio.run(tags.add_tag(photo_id, make_tag(species="Yellow Warbler")))
    service = SearchService(
        tag_repository=tags, photo_repository=DrivePhotoRepository(client)
    )

    result = asyncio.run(service.search(FilterCriteria(species="Warbler")))

    assert sorted(photo.id for photo in result.photos) == ["p1", "p3"]
    assert result.failed_photo_ids == ["p2"]
