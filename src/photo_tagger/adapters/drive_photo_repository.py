"""Google Drive-backed photo repository."""

import logging
from dataclasses import dataclass

from photo_tagger.adapters.drive_client import DriveClient
from photo_tagger.domain.photos import (
    FOLDER_MIME_TYPE,
    DriveFile,
    ImageContent,
    PhotoMetadata,
    PhotoPage,
    UploadResult,
)
from photo_tagger.errors import BackendUnavailable, ConfigurationMissing
from photo_tagger.services.photos import PhotoRepository

_logger = logging.getLogger(__name__)

_FILE_FIELDS = (
    "id, name, mimeType, description, properties, webViewLink, thumbnailLink, "
    "createdTime, modifiedTime"
)
_LIST_FIELDS = f"files({_FILE_FIELDS}), nextPageToken"


def _quote(value: str) -> str:
    """Quote a value for use inside a Drive query string."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def folder_query(folder_id: str, include_folders: bool = False) -> str:
    """Build the Drive query for non-trashed images (and folders) in a folder."""
    type_clause = "mimeType contains 'image/'"
    if include_folders:
        type_clause = f"({type_clause} or mimeType = '{FOLDER_MIME_TYPE}')"
    return f"{_quote(folder_id)} in parents and {type_clause} and trashed = false"


@dataclass
class DrivePhotoRepository(PhotoRepository):
    """Photo repository that stores metadata in Drive file descriptions."""

    client: DriveClient | None
    page_size: int = 100
    thumbnail_path_prefix: str = "/photos/thumbnail"

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _require_client(self) -> DriveClient:
        if self.client is None:
            raise ConfigurationMissing("Service account key not configured")
        return self.client

    async def list_photos(
        self,
        folder_id: str,
        page_token: str | None = None,
        include_folders: bool = False,
    ) -> PhotoPage:
        """Return one page of a folder with decoded metadata."""
        client = self._require_client()
        payload = await client.list_files(
            folder_query(folder_id, include_folders),
            fields=_LIST_FIELDS,
            page_size=self.page_size,
            page_token=page_token,
        )
        files = [self._parse_file(raw) for raw in payload.get("files") or []]
        next_token = payload.get("nextPageToken")
        return PhotoPage(files=files, next_page_token=str(next_token) if next_token else None)

    async def list_all_photos(
        self, folder_id: str, include_folders: bool = False
    ) -> list[DriveFile]:
        """Follow page cursors until the listing is exhausted."""
        files: list[DriveFile] = []
        token: str | None = None
        while True:
            page = await self.list_photos(folder_id, token, include_folders)
            files.extend(page.files)
            if not page.next_page_token:
                return files
            token = page.next_page_token

    async def get_photo_metadata(self, file_id: str) -> DriveFile:
        client = self._require_client()
        raw = await client.get_file(file_id, fields=_FILE_FIELDS)
        return self._parse_file(raw)

    async def upload_photo(
        self,
        content: bytes,
        name: str,
        folder_id: str,
        metadata: PhotoMetadata,
        mime_type: str = "image/jpeg",
    ) -> UploadResult:
        """Upload a file with its metadata in the description."""
        client = self._require_client()
        raw = await client.create_file(
            {
                "name": name,
                "parents": [folder_id],
                "description": metadata.to_description(),
                "properties": metadata.to_properties(),
            },
            content,
            mime_type,
            fields="id, webViewLink, name",
        )
        file_id = raw.get("id")
        if not file_id:
            raise BackendUnavailable("Drive upload returned no file id")
        _logger.info("Uploaded %s to folder %s as %s", name, folder_id, file_id)
        return UploadResult(
            id=str(file_id),
            web_view_link=str(raw.get("webViewLink") or ""),
            metadata=metadata,
        )

    async def update_photo_metadata(self, file_id: str, metadata: PhotoMetadata) -> None:
        client = self._require_client()
        await client.update_file(
            file_id,
            {
                "description": metadata.to_description(),
                "properties": metadata.to_properties(),
            },
        )

    async def delete_photo(self, file_id: str) -> None:
        client = self._require_client()
        await client.delete_file(file_id)
        _logger.info("Deleted Drive file %s", file_id)

    async def download_photo(self, file_id: str) -> ImageContent:
        client = self._require_client()
        content, content_type = await client.download_file(file_id)
        if content_type and content_type.startswith("image/"):
            return ImageContent(content, content_type.split(";", 1)[0].strip())
        return ImageContent(content)

    def _parse_file(self, raw: dict[str, object]) -> DriveFile:
        file_id = str(raw.get("id", ""))
        description = raw.get("description")
        return DriveFile(
            id=file_id,
            name=str(raw.get("name", "")),
            mime_type=str(raw.get("mimeType") or ""),
            web_view_link=str(raw.get("webViewLink") or ""),
            image_url=f"{self.thumbnail_path_prefix}/{file_id}",
            thumbnail_link=raw.get("thumbnailLink"),
            created_time=raw.get("createdTime"),
            modified_time=raw.get("modifiedTime"),
            metadata=PhotoMetadata.from_description(
                description if isinstance(description, str) else None
            ),
        )
