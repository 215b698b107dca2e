"""Client state store: commands that call the backend and update local state."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Protocol
from uuid import uuid4

from photo_tagger.client.state import (
    Action,
    AddPhoto,
    ApplyLocalFilter,
    AttachTag,
    Breadcrumb,
    ClearFilters,
    DetachTag,
    NavigateToBreadcrumb,
    PatchTag,
    PhotoState,
    PushBreadcrumb,
    RecordError,
    RemovePhoto,
    ReplacePhoto,
    ReplaceTagId,
    SearchStatus,
    SelectPhoto,
    SetBreadcrumbs,
    SetCurrentFolder,
    SetFilters,
    SetPhotos,
    SetPhotoTags,
    SetSearchResults,
    reduce,
)
from photo_tagger.domain.photos import Photo
from photo_tagger.domain.tags import FilterCriteria, NewTag, PhotoTag, TagPatch
from photo_tagger.errors import PhotoTaggerError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResponse:
    """Search results as returned by the HTTP API."""

    photos: list[Photo]
    mode: str = "server"
    backend_available: bool = True
    failed_photo_ids: list[str] = field(default_factory=list)


class PhotoApi(Protocol):
    """Backend calls made by the client store."""

    async def list_folder(self, folder_id: str) -> list[Photo]:
        """Return the images and folders of a folder, without tags."""

    async def get_tags(self, photo_id: str) -> list[PhotoTag]:
        """Return tags for a photo."""

    async def add_tag(self, photo_id: str, tag: NewTag) -> str:
        """Create a tag and return its id."""

    async def update_tag(self, tag_id: str, patch: TagPatch) -> bool:
        """Apply a sparse patch to a tag."""

    async def delete_tag(self, tag_id: str) -> None:
        """Delete a tag."""

    async def search(self, criteria: FilterCriteria) -> SearchResponse:
        """Search tags across the whole store."""

    async def delete_photo(self, photo_id: str) -> bool:
        """Delete a photo and its tags; return whether the tags were removed."""


@dataclass
class PhotoStore:
    """Owns a ``PhotoState`` and runs commands against a ``PhotoApi``.

    Tag mutations are optimistic. The change is applied locally first, then
    sent to the backend. If the backend call fails, the local change stays
    and the error is recorded in ``state.last_error``.
    """

    api: PhotoApi
    state: PhotoState = field(default_factory=PhotoState)

    def dispatch(self, action: Action) -> PhotoState:
        self.state = reduce(self.state, action)
        return self.state

    def set_photos(self, photos: list[Photo]) -> PhotoState:
        return self.dispatch(SetPhotos(tuple(photos)))

    def add_photo(self, photo: Photo) -> PhotoState:
        """Append a newly uploaded photo to the current folder."""
        return self.dispatch(AddPhoto(photo))

    def replace_photo(self, photo: Photo) -> PhotoState:
        return self.dispatch(ReplacePhoto(photo))

    def select_photo(self, photo_id: str | None) -> PhotoState:
        return self.dispatch(SelectPhoto(photo_id))

    async def add_tag(self, photo_id: str, tag: NewTag) -> str:
        """Attach a tag locally, then persist it.

        Returns the server id, or the provisional local id when the backend
        call failed.
        """
        local_id = f"local_{uuid4().hex}"
        provisional = PhotoTag.from_new(local_id, photo_id, tag, created_at="")
        self.dispatch(AttachTag(photo_id, provisional))
        try:
            tag_id = await self.api.add_tag(photo_id, tag)
        except PhotoTaggerError as exc:
            _logger.warning("Keeping local tag for photo %s: %s", photo_id, exc)
            self.dispatch(RecordError(f"Failed to add tag: {exc}"))
            return local_id
        self.dispatch(ReplaceTagId(photo_id, local_id, tag_id))
        return tag_id

    async def update_tag(self, photo_id: str, tag_id: str, patch: TagPatch) -> None:
        """Patch a tag locally, then persist the patch."""
        self.dispatch(PatchTag(photo_id, tag_id, patch))
        try:
            await self.api.update_tag(tag_id, patch)
        except PhotoTaggerError as exc:
            _logger.warning("Keeping local edit of tag %s: %s", tag_id, exc)
            self.dispatch(RecordError(f"Failed to update tag: {exc}"))

    async def delete_tag(self, photo_id: str, tag_id: str) -> None:
        """Remove a tag locally, then delete it on the backend."""
        self.dispatch(DetachTag(photo_id, tag_id))
        try:
            await self.api.delete_tag(tag_id)
        except PhotoTaggerError as exc:
            _logger.warning("Tag %s removed locally only: %s", tag_id, exc)
            self.dispatch(RecordError(f"Failed to delete tag: {exc}"))

    async def load_photo_tags(self, photo_id: str) -> list[PhotoTag]:
        """Fetch tags for one photo and merge them into local state."""
        try:
            tags = await self.api.get_tags(photo_id)
        except PhotoTaggerError as exc:
            _logger.warning("Error loading tags for photo %s: %s", photo_id, exc)
            self.dispatch(RecordError(f"Failed to load tags: {exc}"))
            return []
        self.dispatch(SetPhotoTags(photo_id, tuple(tags)))
        return tags

    async def search_photos(self, criteria: FilterCriteria) -> PhotoState:
        """Replace the displayed list with photos whose tags match.

        Empty criteria show the full list. When the tag store cannot be
        searched, resident photos are filtered by their loaded tags instead.
        The full photo list is never modified.
        """
        self.dispatch(SetFilters(criteria))
        if criteria.is_empty():
            return self.dispatch(ClearFilters())
        try:
            response = await self.api.search(criteria)
        except PhotoTaggerError as exc:
            _logger.warning("Search failed, filtering locally: %s", exc)
            self.dispatch(RecordError(f"Search failed: {exc}"))
            return self.dispatch(ApplyLocalFilter())
        if not response.backend_available:
            self.dispatch(RecordError("Tag search unavailable; showing local matches"))
            return self.dispatch(ApplyLocalFilter())
        status = SearchStatus.OK if response.photos else SearchStatus.EMPTY
        self.dispatch(RecordError(None))
        return self.dispatch(SetSearchResults(tuple(response.photos), status))

    def clear_filters(self) -> PhotoState:
        return self.dispatch(ClearFilters())

    async def delete_photo(self, photo_id: str) -> bool:
        """Delete a photo on the backend, then drop it from local state."""
        try:
            tags_deleted = await self.api.delete_photo(photo_id)
        except PhotoTaggerError as exc:
            _logger.warning("Error deleting photo %s: %s", photo_id, exc)
            self.dispatch(RecordError(f"Failed to delete photo: {exc}"))
            return False
        self.dispatch(RemovePhoto(photo_id))
        if not tags_deleted:
            self.dispatch(RecordError(f"Photo {photo_id} deleted but its tags remain"))
        return True

    async def load_folder(self, folder_id: str) -> PhotoState:
        """List a folder and load tags for each image in it."""
        try:
            items = await self.api.list_folder(folder_id)
        except PhotoTaggerError as exc:
            _logger.warning("Error loading folder %s: %s", folder_id, exc)
            return self.dispatch(RecordError(f"Failed to load photos: {exc}"))

        async def with_tags(photo: Photo) -> Photo:
            if not photo.is_image:
                return photo
            try:
                tags = await self.api.get_tags(photo.id)
            except PhotoTaggerError as exc:
                _logger.warning("Error loading tags for photo %s: %s", photo.id, exc)
                return photo
            return replace(photo, tags=tuple(tags))

        photos = await asyncio.gather(*(with_tags(item) for item in items))
        self.dispatch(RecordError(None))
        return self.set_photos(list(photos))

    async def open_root(self, folder_id: str, name: str = "Home") -> PhotoState:
        """Start browsing at a root folder, resetting the breadcrumb path."""
        self.dispatch(SetCurrentFolder(folder_id))
        self.dispatch(SetBreadcrumbs((Breadcrumb(id=folder_id, name=name),)))
        self.dispatch(SelectPhoto(None))
        return await self.load_folder(folder_id)

    async def open_folder(self, folder_id: str, name: str) -> PhotoState:
        """Descend into a subfolder."""
        self.dispatch(SetCurrentFolder(folder_id))
        self.dispatch(PushBreadcrumb(Breadcrumb(id=folder_id, name=name)))
        self.dispatch(SelectPhoto(None))
        return await self.load_folder(folder_id)

    async def navigate_to_breadcrumb(self, index: int) -> PhotoState:
        """Return to a folder on the current breadcrumb path."""
        self.dispatch(NavigateToBreadcrumb(index))
        if self.state.current_folder_id is None:
            return self.state
        return await self.load_folder(self.state.current_folder_id)
