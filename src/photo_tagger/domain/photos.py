"""Domain models for photos stored in Google Drive."""

import json
from dataclasses import dataclass, field

from photo_tagger.domain.tags import (
    CAMEL_NAMES,
    OPTIONAL_TAG_FIELDS,
    REQUIRED_TAG_FIELDS,
    TAG_FIELDS,
    NewTag,
    PhotoTag,
)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Fields mirrored into Drive file properties for provider-side queries.
PROPERTY_FIELDS = REQUIRED_TAG_FIELDS


@dataclass(frozen=True)
class PhotoMetadata:
    """Tag-like fields stored redundantly in a Drive file description."""

    record_id: str = ""
    band_number: str = ""
    date: str = ""
    location: str = ""
    species: str = ""
    age: str = ""
    sex: str = ""
    first_photo_number: str | None = None
    last_photo_number: str | None = None
    wrp_plumage_code: str | None = None
    notes: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, object]) -> "PhotoMetadata":
        """Build metadata from camelCase keys, coercing values to strings."""
        values: dict[str, object] = {}
        for name in REQUIRED_TAG_FIELDS:
            raw = data.get(CAMEL_NAMES[name])
            values[name] = "" if raw is None else str(raw)
        for name in OPTIONAL_TAG_FIELDS:
            raw = data.get(CAMEL_NAMES[name])
            values[name] = None if raw is None else str(raw)
        return cls(**values)

    @classmethod
    def from_description(cls, description: str | None) -> "PhotoMetadata":
        """Decode a description, falling back to empty metadata."""
        if not description:
            return cls()
        try:
            payload = json.loads(description)
        except (json.JSONDecodeError, TypeError):
            return cls()
        if not isinstance(payload, dict):
            return cls()
        return cls.from_mapping(payload)

    def to_dict(self) -> dict[str, str]:
        """Return camelCase fields, omitting unset optional ones."""
        data: dict[str, str] = {}
        for name in TAG_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[CAMEL_NAMES[name]] = value
        return data

    def to_description(self) -> str:
        """Encode as canonical JSON for the Drive description field."""
        return json.dumps(
            self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )

    def to_properties(self) -> dict[str, str]:
        return {CAMEL_NAMES[name]: getattr(self, name) for name in PROPERTY_FIELDS}

    def to_new_tag(self) -> NewTag:
        return NewTag(**{name: getattr(self, name) for name in TAG_FIELDS})

    def is_empty(self) -> bool:
        return self == PhotoMetadata()


@dataclass(frozen=True)
class DriveFile:
    """A Drive file with its decoded description metadata."""

    id: str
    name: str
    mime_type: str
    web_view_link: str = ""
    image_url: str = ""
    thumbnail_link: str | None = None
    created_time: str | None = None
    modified_time: str | None = None
    metadata: PhotoMetadata = field(default_factory=PhotoMetadata)

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "mimeType": self.mime_type,
            "imageUrl": self.image_url,
            "webViewLink": self.web_view_link,
            "createdTime": self.created_time,
            "modifiedTime": self.modified_time,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class PhotoPage:
    """One page of a Drive folder listing."""

    files: list[DriveFile]
    next_page_token: str | None = None


@dataclass(frozen=True)
class UploadResult:
    """Result of uploading a photo to Drive."""

    id: str
    web_view_link: str
    metadata: PhotoMetadata


@dataclass(frozen=True)
class ImageContent:
    content: bytes
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class Photo:
    """A photo as presented to the user, with tags from the tag store."""

    id: str
    name: str
    mime_type: str = "image/jpeg"
    image_url: str = ""
    web_view_link: str = ""
    created_time: str | None = None
    modified_time: str | None = None
    tags: tuple[PhotoTag, ...] = ()

    @property
    def google_drive_id(self) -> str:
        return self.id

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @classmethod
    def from_drive_file(
        cls, drive_file: DriveFile, tags: list[PhotoTag] | tuple[PhotoTag, ...] = ()
    ) -> "Photo":
        return cls(
            id=drive_file.id,
            name=drive_file.name,
            mime_type=drive_file.mime_type or "image/jpeg",
            image_url=drive_file.image_url,
            web_view_link=drive_file.web_view_link,
            created_time=drive_file.created_time,
            modified_time=drive_file.modified_time,
            tags=tuple(tags),
        )

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Photo":
        """Parse a photo JSON object from the HTTP API."""
        raw_tags = data.get("tags") or []
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            mime_type=str(data.get("mimeType") or "image/jpeg"),
            image_url=str(data.get("imageUrl") or ""),
            web_view_link=str(data.get("webViewLink") or ""),
            created_time=data.get("createdTime"),
            modified_time=data.get("modifiedTime"),
            tags=tuple(PhotoTag.from_row(tag) for tag in raw_tags),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "googleDriveId": self.google_drive_id,
            "name": self.name,
            "mimeType": self.mime_type,
            "imageUrl": self.image_url,
            "webViewLink": self.web_view_link,
            "createdTime": self.created_time,
            "modifiedTime": self.modified_time,
            "createdAt": self.created_time,
            "tags": [tag.to_dict() for tag in self.tags],
        }
