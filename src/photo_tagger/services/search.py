"""Tag search resolved into photos from the file store."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

from photo_tagger.domain.photos import DriveFile, Photo
from photo_tagger.domain.tags import FilterCriteria, PhotoTag
from photo_tagger.errors import (
    BackendUnavailable,
    ConfigurationMissing,
    PhotoTaggerError,
)
from photo_tagger.services.photos import PhotoRepository
from photo_tagger.services.tags import TagRepository

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class SearchMode(StrEnum):
    """How a search request was answered."""

    UNFILTERED = "unfiltered"
    SERVER_SEARCH = "server"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class PartialBatchFailure:
    """Report of a fan-out where some items failed and the rest succeeded."""

    failed_ids: list[str]
    succeeded: int

    def __str__(self) -> str:
        total = len(self.failed_ids) + self.succeeded
        return f"{len(self.failed_ids)} of {total} items failed"


@dataclass(frozen=True)
class SearchResult:
    """Photos matching a search, plus the ids that could not be fetched."""

    mode: SearchMode
    photos: list[Photo] = field(default_factory=list)
    failed_photo_ids: list[str] = field(default_factory=list)

    @property
    def backend_available(self) -> bool:
        return self.mode is not SearchMode.UNAVAILABLE

    @property
    def partial_failure(self) -> PartialBatchFailure | None:
        if not self.failed_photo_ids:
            return None
        return PartialBatchFailure(
            failed_ids=list(self.failed_photo_ids), succeeded=len(self.photos)
        )


@dataclass
class SearchService:
    """Resolve tag criteria to photo records.

    Matching tags come from the tag store. Their distinct photo ids, in order
    of first appearance, are fetched from the file store concurrently. A photo
    whose fetch fails is dropped from the result and reported in
    ``failed_photo_ids``; the other fetches are not affected.
    """

    tag_repository: TagRepository
    photo_repository: PhotoRepository
    max_concurrency: int | None = 8
    fetch_timeout_seconds: float | None = None
    retry_attempts: int = 0
    retry_delay_seconds: float = 0.3

    def select_mode(self, criteria: FilterCriteria) -> SearchMode:
        if criteria.is_empty():
            return SearchMode.UNFILTERED
        if not self.tag_repository.configured:
            return SearchMode.UNAVAILABLE
        return SearchMode.SERVER_SEARCH

    async def search(self, criteria: FilterCriteria) -> SearchResult:
        """Search tags and assemble the owning photos."""
        mode = self.select_mode(criteria)
        if mode is not SearchMode.SERVER_SEARCH:
            return SearchResult(mode=mode)

        try:
            tags = await self.tag_repository.search_tags(criteria)
        except BackendUnavailable:
            _logger.exception("Tag search failed for criteria %s", criteria.to_dict())
            return SearchResult(mode=SearchMode.UNAVAILABLE)
        _logger.info("Tag search matched %s tags", len(tags))
        if not tags:
            return SearchResult(mode=mode)

        tags_by_photo: dict[str, list[PhotoTag]] = {}
        for tag in tags:
            tags_by_photo.setdefault(tag.photo_id, []).append(tag)
        if not self.photo_repository.configured:
            raise ConfigurationMissing("Service account key not configured")

        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )
        fetched = await asyncio.gather(
            *(
                self._fetch_photo(photo_id, photo_tags, semaphore)
                for photo_id, photo_tags in tags_by_photo.items()
            )
        )
        photos = [photo for photo in fetched if photo is not None]
        failed = [
            photo_id
            for photo_id, photo in zip(tags_by_photo, fetched, strict=True)
            if photo is None
        ]
        if failed:
            _logger.warning(
                "Search dropped %s of %s photos: %s",
                len(failed),
                len(tags_by_photo),
                ", ".join(failed),
            )
        return SearchResult(mode=mode, photos=photos, failed_photo_ids=failed)

    async def _fetch_photo(
        self,
        photo_id: str,
        tags: list[PhotoTag],
        semaphore: asyncio.Semaphore | None,
    ) -> Photo | None:
        try:
            if semaphore is None:
                drive_file = await self._call_with_retry(
                    lambda: self._get_metadata(photo_id), action=photo_id
                )
            else:
                async with semaphore:
                    drive_file = await self._call_with_retry(
                        lambda: self._get_metadata(photo_id), action=photo_id
                    )
        except (PhotoTaggerError, TimeoutError) as exc:
            _logger.warning("Error fetching metadata for photo %s: %s", photo_id, exc)
            return None
        return Photo.from_drive_file(drive_file, tags)

    async def _get_metadata(self, photo_id: str) -> DriveFile:
        call = self.photo_repository.get_photo_metadata(photo_id)
        if self.fetch_timeout_seconds is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.fetch_timeout_seconds)

    async def _call_with_retry(
        self, func: Callable[[], Awaitable[T]], *, action: str
    ) -> T:
        """Call an async function, retrying up to ``retry_attempts`` times."""
        attempt = 0
        while True:
            try:
                return await func()
            except (BackendUnavailable, TimeoutError) as exc:
                attempt += 1
                if attempt > self.retry_attempts:
                    raise
                _logger.info(
                    "Retrying %s (attempt %s/%s): %s",
                    action,
                    attempt,
                    self.retry_attempts + 1,
                    exc,
                )
                await asyncio.sleep(self.retry_delay_seconds)
