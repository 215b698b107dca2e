"""Tag store port and tag use cases."""

from dataclasses import dataclass
from typing import Protocol

from photo_tagger.domain.tags import (
    AGE_CODES,
    SEX_CODES,
    FilterCriteria,
    NewTag,
    PhotoTag,
    TagPatch,
)
from photo_tagger.errors import ValidationError


class TagRepository(Protocol):
    """Persistence interface for tag rows."""

    @property
    def configured(self) -> bool:
        """Return true when the backing store can be reached."""

    async def get_tags(self, photo_id: str) -> list[PhotoTag]:
        """Return tags for a photo, newest first."""

    async def add_tag(self, photo_id: str, tag: NewTag) -> str:
        """Insert a tag and return its generated id."""

    async def update_tag(self, tag_id: str, patch: TagPatch) -> bool:
        """Apply a sparse patch; return false when the patch is empty."""

    async def delete_tag(self, tag_id: str) -> None:
        """Delete a tag; absent ids are ignored."""

    async def delete_tags_for_photo(self, photo_id: str) -> None:
        """Delete every tag that references a photo."""

    async def search_tags(self, criteria: FilterCriteria) -> list[PhotoTag]:
        """Return tags matching every active criteria field, newest first."""

    async def init_schema(self) -> None:
        """Create the tag table and its indexes when missing."""

    async def recent_tags(self, limit: int) -> list[dict[str, object]]:
        """Return the newest raw rows for diagnostics."""


@dataclass
class TagService:
    """Application service for tag operations."""

    repository: TagRepository

    @property
    def configured(self) -> bool:
        return self.repository.configured

    async def get_tags(self, photo_id: str) -> list[PhotoTag]:
        """Return tags for a photo."""
        _require(photo_id, "photoId is required")
        return await self.repository.get_tags(photo_id)

    async def add_tag(self, photo_id: str, tag: NewTag) -> str:
        """Validate and store a new tag."""
        _require(photo_id, "photoId is required")
        missing = tag.missing_fields()
        if missing:
            raise ValidationError(f"Missing required tag fields: {', '.join(missing)}")
        _check_codes(tag.age, tag.sex)
        return await self.repository.add_tag(photo_id, tag)

    async def update_tag(self, tag_id: str, patch: TagPatch) -> bool:
        """Apply a sparse patch to a tag."""
        _require(tag_id, "tagId is required")
        _check_codes(patch.age, patch.sex)
        return await self.repository.update_tag(tag_id, patch)

    async def delete_tag(self, tag_id: str) -> None:
        _require(tag_id, "tagId is required")
        await self.repository.delete_tag(tag_id)

    async def delete_tags_for_photo(self, photo_id: str) -> None:
        _require(photo_id, "photoId is required")
        await self.repository.delete_tags_for_photo(photo_id)

    async def search(self, criteria: FilterCriteria) -> list[PhotoTag]:
        """Search tags; empty criteria match nothing."""
        if criteria.is_empty():
            return []
        return await self.repository.search_tags(criteria)

    async def initialize_store(self) -> None:
        await self.repository.init_schema()

    async def recent_tags(self, limit: int = 10) -> list[dict[str, object]]:
        return await self.repository.recent_tags(limit)


def _require(value: str | None, message: str) -> None:
    if not value or not value.strip():
        raise ValidationError(message)


def _check_codes(age: str | None, sex: str | None) -> None:
    if age and age not in AGE_CODES:
        raise ValidationError(
            f"Invalid age code {age!r}; expected one of {', '.join(sorted(AGE_CODES))}"
        )
    if sex and sex not in SEX_CODES:
        raise ValidationError(
            f"Invalid sex code {sex!r}; expected one of {', '.join(sorted(SEX_CODES))}"
        )
