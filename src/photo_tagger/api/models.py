"""Pydantic models for HTTP request bodies."""

from pydantic import BaseModel, ConfigDict, Field


class TagPayload(BaseModel):
    """Tag fields as sent by the browser."""

    model_config = ConfigDict(populate_by_name=True)

    record_id: str | None = Field(default=None, alias="recordId")
    band_number: str | None = Field(default=None, alias="bandNumber")
    date: str | None = None
    location: str | None = None
    species: str | None = None
    age: str | None = None
    sex: str | None = None
    first_photo_number: str | None = Field(default=None, alias="firstPhotoNumber")
    last_photo_number: str | None = Field(default=None, alias="lastPhotoNumber")
    wrp_plumage_code: str | None = Field(default=None, alias="wrpPlumageCode")
    notes: str | None = None

    def to_mapping(self) -> dict[str, object]:
        """Return only the fields the client sent, keyed by camelCase name."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class CreateTagRequest(BaseModel):
    photo_id: str = Field(alias="photoId")
    tag: TagPayload


class UpdateTagRequest(BaseModel):
    tag_id: str = Field(alias="tagId")
    tag: TagPayload


class FetchPhotosRequest(BaseModel):
    folder_id: str | None = Field(default=None, alias="folderId")
    page_token: str | None = Field(default=None, alias="pageToken")
    include_folders: bool = Field(default=False, alias="includeFolders")


class DeletePhotoRequest(BaseModel):
    photo_id: str = Field(alias="photoId")


class UpdateMetadataRequest(BaseModel):
    file_id: str = Field(alias="fileId")
    metadata: TagPayload
