"""Shared test fixtures."""

from dataclasses import dataclass, field, replace

import pytest

from photo_tagger.config import Settings
from photo_tagger.containers import AppContainer
from photo_tagger.domain.photos import (
    DriveFile,
    ImageContent,
    PhotoMetadata,
    PhotoPage,
    UploadResult,
)
from photo_tagger.domain.tags import FilterCriteria, NewTag, PhotoTag, TagPatch
from photo_tagger.errors import BackendUnavailable, ConfigurationMissing, NotFound
from photo_tagger.services.photos import PhotoRepository, PhotoService
from photo_tagger.services.search import SearchService
from photo_tagger.services.tags import TagRepository, TagService


def make_tag(**overrides: object) -> NewTag:
    """Return a complete tag with sensible defaults."""
    values: dict[str, object] = {
        "record_id": "R1",
        "band_number": "1234-56789",
        "date": "2024-05-01",
        "location": "North Marsh",
        "species": "Yellow Warbler",
        "age": "AHY",
        "sex": "M",
    }
    values.update(overrides)
    return NewTag(**values)


@dataclass
class InMemoryTagRepository(TagRepository):
    """In-memory tag repository for tests."""

    tags: list[PhotoTag] = field(default_factory=list)
    available: bool = True
    fail_with: Exception | None = None
    counter: int = 0
    search_calls: int = 0

    @property
    def configured(self) -> bool:
        return self.available

    def _check(self) -> None:
        if not self.available:
            raise ConfigurationMissing("Turso database not configured")
        if self.fail_with is not None:
            raise self.fail_with

    def _next_timestamp(self) -> str:
        self.counter += 1
        return f"2024-05-01T00:00:{self.counter:02d}+00:00"

    async def get_tags(self, photo_id: str) -> list[PhotoTag]:
        if not self.available:
            return []
        self._check()
        matching = [tag for tag in self.tags if tag.photo_id == photo_id]
        return sorted(matching, key=lambda tag: tag.created_at, reverse=True)

    async def add_tag(self, photo_id: str, tag: NewTag) -> str:
        self._check()
        created_at = self._next_timestamp()
        tag_id = f"tag_{self.counter}"
        self.tags.append(PhotoTag.from_new(tag_id, photo_id, tag, created_at))
        return tag_id

    async def update_tag(self, tag_id: str, patch: TagPatch) -> bool:
        self._check()
        if patch.is_empty():
            return False
        for index, tag in enumerate(self.tags):
            if tag.id == tag_id:
                self.tags[index] = patch.apply(tag, updated_at=self._next_timestamp())
                return True
        raise NotFound(f"Tag {tag_id} not found")

    async def delete_tag(self, tag_id: str) -> None:
        self._check()
        self.tags = [tag for tag in self.tags if tag.id != tag_id]

    async def delete_tags_for_photo(self, photo_id: str) -> None:
        self._check()
        self.tags = [tag for tag in self.tags if tag.photo_id != photo_id]

    async def search_tags(self, criteria: FilterCriteria) -> list[PhotoTag]:
        self.search_calls += 1
        if not self.available:
            return []
        self._check()
        matching = [tag for tag in self.tags if criteria.matches(tag)]
        return sorted(matching, key=lambda tag: tag.created_at, reverse=True)

    async def init_schema(self) -> None:
        self._check()

    async def recent_tags(self, limit: int) -> list[dict[str, object]]:
        ordered = sorted(self.tags, key=lambda tag: tag.created_at, reverse=True)
        return [tag.to_dict() for tag in ordered[:limit]]


@dataclass
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory photo repository keyed by file id."""

    files: dict[str, DriveFile] = field(default_factory=dict)
    parents: dict[str, str] = field(default_factory=dict)
    contents: dict[str, bytes] = field(default_factory=dict)
    failing_ids: set[str] = field(default_factory=set)
    available: bool = True
    fail_deletes: bool = False
    fetch_calls: list[str] = field(default_factory=list)
    counter: int = 0

    @property
    def configured(self) -> bool:
        return self.available

    def add_file(
        self,
        file_id: str,
        folder_id: str = "folder-1",
        mime_type: str = "image/jpeg",
        metadata: PhotoMetadata | None = None,
    ) -> DriveFile:
        drive_file = DriveFile(
            id=file_id,
            name=f"{file_id}.jpg",
            mime_type=mime_type,
            web_view_link=f"https://drive.example/{file_id}",
            image_url=f"/photos/thumbnail/{file_id}",
            metadata=metadata or PhotoMetadata(),
        )
        self.files[file_id] = drive_file
        self.parents[file_id] = folder_id
        return drive_file

    async def list_photos(
        self,
        folder_id: str,
        page_token: str | None = None,
        include_folders: bool = False,
    ) -> PhotoPage:
        files = [
            item
            for file_id, item in self.files.items()
            if self.parents.get(file_id) == folder_id
            and (item.is_image or (include_folders and item.is_folder))
        ]
        return PhotoPage(files=files)

    async def get_photo_metadata(self, file_id: str) -> DriveFile:
        self.fetch_calls.append(file_id)
        if file_id in self.failing_ids:
            raise BackendUnavailable(f"Drive request failed for {file_id}")
        if file_id not in self.files:
            raise NotFound(f"Drive file not found: {file_id}")
        return self.files[file_id]

    async def upload_photo(
        self,
        content: bytes,
        name: str,
        folder_id: str,
        metadata: PhotoMetadata,
        mime_type: str = "image/jpeg",
    ) -> UploadResult:
        self.counter += 1
        file_id = f"file-{self.counter}"
        self.add_file(file_id, folder_id, mime_type, metadata)
        self.files[file_id] = replace(self.files[file_id], name=name)
        self.contents[file_id] = content
        return UploadResult(
            id=file_id, web_view_link=f"https://drive.example/{file_id}", metadata=metadata
        )

    async def update_photo_metadata(self, file_id: str, metadata: PhotoMetadata) -> None:
        if file_id not in self.files:
            raise NotFound(f"Drive file not found: {file_id}")
        self.files[file_id] = replace(self.files[file_id], metadata=metadata)

    async def delete_photo(self, file_id: str) -> None:
        if self.fail_deletes:
            raise BackendUnavailable("Drive request failed: 500")
        if file_id not in self.files:
            raise NotFound(f"Drive file not found: {file_id}")
        del self.files[file_id]
        self.parents.pop(file_id, None)

    async def download_photo(self, file_id: str) -> ImageContent:
        if file_id not in self.files:
            raise NotFound(f"Drive file not found: {file_id}")
        return ImageContent(
            self.contents.get(file_id, b"jpeg-bytes"), self.files[file_id].mime_type
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        google_drive_folder_id="folder-1",
        turso_connection_url="libsql://tags-example.turso.io",
        turso_auth_token="turso-token",
    )


@pytest.fixture
def tag_repository() -> InMemoryTagRepository:
    return InMemoryTagRepository()


@pytest.fixture
def photo_repository() -> InMemoryPhotoRepository:
    return InMemoryPhotoRepository()


@pytest.fixture
def tag_service(tag_repository: InMemoryTagRepository) -> TagService:
    return TagService(tag_repository)


@pytest.fixture
def container(
    settings: Settings,
    tag_repository: InMemoryTagRepository,
    photo_repository: InMemoryPhotoRepository,
) -> AppContainer:
    tag_service = TagService(tag_repository)
    photo_service = PhotoService(
        photo_repository=photo_repository,
        tag_service=tag_service,
        default_folder_id=settings.google_drive_folder_id,
    )
    search_service = SearchService(
        tag_repository=tag_repository, photo_repository=photo_repository
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        tag_service=tag_service,
        photo_service=photo_service,
        search_service=search_service,
        close_resources=close_resources,
    )
