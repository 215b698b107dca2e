"""File store port and photo use cases."""

import logging
from dataclasses import dataclass
from typing import Protocol

from photo_tagger.domain.photos import (
    DriveFile,
    ImageContent,
    PhotoMetadata,
    PhotoPage,
    UploadResult,
)
from photo_tagger.errors import PhotoTaggerError, ValidationError
from photo_tagger.services.tags import TagService

_logger = logging.getLogger(__name__)


class PhotoRepository(Protocol):
    """Interface for photo objects held in the file store."""

    @property
    def configured(self) -> bool:
        """Return true when file store credentials are available."""

    async def list_photos(
        self,
        folder_id: str,
        page_token: str | None = None,
        include_folders: bool = False,
    ) -> PhotoPage:
        """Return one page of non-trashed images (and folders) in a folder."""

    async def get_photo_metadata(self, file_id: str) -> DriveFile:
        """Return a file with its decoded metadata."""

    async def upload_photo(
        self,
        content: bytes,
        name: str,
        folder_id: str,
        metadata: PhotoMetadata,
        mime_type: str = "image/jpeg",
    ) -> UploadResult:
        """Create a file with metadata encoded in its description."""

    async def update_photo_metadata(self, file_id: str, metadata: PhotoMetadata) -> None:
        """Replace the metadata encoded in a file description."""

    async def delete_photo(self, file_id: str) -> None:
        """Delete a file."""

    async def download_photo(self, file_id: str) -> ImageContent:
        """Return the raw bytes of a file and their content type."""


@dataclass(frozen=True)
class UploadOutcome:
    """Uploaded file plus the tag created from its metadata, if any."""

    result: UploadResult
    tag_id: str | None


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of deleting a photo and its tags.

    ``tags_deleted`` is false when the file was removed but tag cleanup
    failed, leaving orphaned tag rows behind.
    """

    photo_id: str
    tags_deleted: bool
    error: str | None = None


@dataclass
class PhotoService:
    """Application service coordinating the file store and the tag store."""

    photo_repository: PhotoRepository
    tag_service: TagService
    default_folder_id: str | None = None

    def resolve_folder(self, folder_id: str | None) -> str:
        """Return the requested folder or the configured default."""
        resolved = (folder_id or "").strip() or (self.default_folder_id or "")
        if not resolved:
            raise ValidationError("folderId is required")
        return resolved

    async def list_photos(
        self,
        folder_id: str | None,
        page_token: str | None = None,
        include_folders: bool = False,
    ) -> PhotoPage:
        """List one page of a folder."""
        return await self.photo_repository.list_photos(
            self.resolve_folder(folder_id),
            page_token=page_token,
            include_folders=include_folders,
        )

    async def upload_photo(  # noqa: PLR0913
        self,
        content: bytes,
        name: str,
        folder_id: str | None,
        metadata: PhotoMetadata,
        mime_type: str = "image/jpeg",
    ) -> UploadOutcome:
        """Upload a photo, then record its metadata as a tag.

        A tag store failure does not undo the upload; it is logged and the
        outcome carries no tag id.
        """
        if not content:
            raise ValidationError("Missing file or folderId")
        folder = self.resolve_folder(folder_id)
        result = await self.photo_repository.upload_photo(
            content, name, folder, metadata, mime_type=mime_type
        )
        tag_id: str | None = None
        if not metadata.is_empty():
            try:
                tag_id = await self.tag_service.add_tag(
                    result.id, metadata.to_new_tag()
                )
            except PhotoTaggerError:
                _logger.warning(
                    "Failed to save tag for uploaded photo %s", result.id, exc_info=True
                )
        return UploadOutcome(result=result, tag_id=tag_id)

    async def update_metadata(self, file_id: str, metadata: PhotoMetadata) -> None:
        if not file_id:
            raise ValidationError("fileId is required")
        await self.photo_repository.update_photo_metadata(file_id, metadata)

    async def delete_photo(self, photo_id: str) -> DeleteOutcome:
        """Delete the file, then its tags.

        File deletion errors propagate. Tag cleanup errors are reported in
        the outcome.
        """
        if not photo_id:
            raise ValidationError("photoId is required")
        await self.photo_repository.delete_photo(photo_id)
        try:
            await self.tag_service.delete_tags_for_photo(photo_id)
        except PhotoTaggerError as exc:
            _logger.warning(
                "Photo %s deleted but its tags were not: %s", photo_id, exc
            )
            return DeleteOutcome(photo_id=photo_id, tags_deleted=False, error=str(exc))
        return DeleteOutcome(photo_id=photo_id, tags_deleted=True)

    async def thumbnail(self, file_id: str) -> ImageContent:
        if not file_id:
            raise ValidationError("fileId is required")
        return await self.photo_repository.download_photo(file_id)
