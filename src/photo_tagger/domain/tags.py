"""Domain models for photo tags and tag search criteria."""

from dataclasses import dataclass, fields, replace

AGE_CODES = frozenset({"HY", "SY", "ASY", "AHY", "U"})
SEX_CODES = frozenset({"M", "F", "U"})

REQUIRED_TAG_FIELDS = (
    "record_id",
    "band_number",
    "date",
    "location",
    "species",
    "age",
    "sex",
)
OPTIONAL_TAG_FIELDS = (
    "first_photo_number",
    "last_photo_number",
    "wrp_plumage_code",
    "notes",
)
TAG_FIELDS = REQUIRED_TAG_FIELDS + OPTIONAL_TAG_FIELDS
FILTER_FIELDS = (
    "record_id",
    "band_number",
    "date",
    "location",
    "species",
    "age",
    "sex",
    "notes",
)

# Column and JSON key for each attribute.
CAMEL_NAMES = {
    "id": "id",
    "photo_id": "photoId",
    "record_id": "recordId",
    "band_number": "bandNumber",
    "date": "date",
    "location": "location",
    "species": "species",
    "age": "age",
    "sex": "sex",
    "first_photo_number": "firstPhotoNumber",
    "last_photo_number": "lastPhotoNumber",
    "wrp_plumage_code": "wrpPlumageCode",
    "notes": "notes",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class NewTag:
    """Tag fields supplied by a caller before the store assigns an id."""

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
    def from_mapping(cls, data: dict[str, object]) -> "NewTag":
        """Build a tag from a camelCase mapping, ignoring unknown keys."""
        values: dict[str, object] = {}
        for name in REQUIRED_TAG_FIELDS:
            raw = data.get(CAMEL_NAMES[name])
            values[name] = "" if raw is None else str(raw)
        for name in OPTIONAL_TAG_FIELDS:
            values[name] = _optional_str(data.get(CAMEL_NAMES[name]))
        return cls(**values)

    def missing_fields(self) -> list[str]:
        """Return camelCase names of required fields that are blank."""
        return [
            CAMEL_NAMES[name]
            for name in REQUIRED_TAG_FIELDS
            if not str(getattr(self, name)).strip()
        ]

    def to_dict(self) -> dict[str, object]:
        return {CAMEL_NAMES[name]: getattr(self, name) for name in TAG_FIELDS}


@dataclass(frozen=True)
class PhotoTag:
    """A tag row stored in the tag store."""

    id: str
    photo_id: str
    record_id: str
    band_number: str
    date: str
    location: str
    species: str
    age: str
    sex: str
    created_at: str
    first_photo_number: str | None = None
    last_photo_number: str | None = None
    wrp_plumage_code: str | None = None
    notes: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, object]) -> "PhotoTag":
        """Parse a tag row or a camelCase JSON object."""
        return cls(
            id=str(row.get("id", "")),
            photo_id=str(row.get("photoId") or ""),
            record_id=str(row.get("recordId") or ""),
            band_number=str(row.get("bandNumber") or ""),
            date=str(row.get("date") or ""),
            location=str(row.get("location") or ""),
            species=str(row.get("species") or ""),
            age=str(row.get("age") or ""),
            sex=str(row.get("sex") or ""),
            created_at=str(row.get("createdAt") or ""),
            first_photo_number=_optional_str(row.get("firstPhotoNumber")),
            last_photo_number=_optional_str(row.get("lastPhotoNumber")),
            wrp_plumage_code=_optional_str(row.get("wrpPlumageCode")),
            notes=_optional_str(row.get("notes")),
            updated_at=_optional_str(row.get("updatedAt")),
        )

    @classmethod
    def from_new(
        cls, tag_id: str, photo_id: str, tag: NewTag, created_at: str
    ) -> "PhotoTag":
        """Create a stored tag from caller-supplied fields."""
        return cls(
            id=tag_id,
            photo_id=photo_id,
            created_at=created_at,
            **{name: getattr(tag, name) for name in TAG_FIELDS},
        )

    def to_dict(self) -> dict[str, object]:
        return {CAMEL_NAMES[item.name]: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class TagPatch:
    """Sparse update for a tag; None means the field is left unchanged."""

    record_id: str | None = None
    band_number: str | None = None
    date: str | None = None
    location: str | None = None
    species: str | None = None
    age: str | None = None
    sex: str | None = None
    first_photo_number: str | None = None
    last_photo_number: str | None = None
    wrp_plumage_code: str | None = None
    notes: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, object]) -> "TagPatch":
        """Build a patch from the camelCase keys present in the mapping."""
        return cls(
            **{
                name: _optional_str(data.get(CAMEL_NAMES[name]))
                for name in TAG_FIELDS
            }
        )

    def changes(self) -> dict[str, str]:
        """Return the fields this patch sets, keyed by attribute name."""
        return {
            name: getattr(self, name)
            for name in TAG_FIELDS
            if getattr(self, name) is not None
        }

    def is_empty(self) -> bool:
        return not self.changes()

    def apply(self, tag: PhotoTag, updated_at: str | None = None) -> PhotoTag:
        """Return the tag with this patch merged in."""
        changes = self.changes()
        if not changes:
            return tag
        if updated_at is not None:
            return replace(tag, updated_at=updated_at, **changes)
        return replace(tag, **changes)

    def to_dict(self) -> dict[str, str]:
        return {CAMEL_NAMES[name]: value for name, value in self.changes().items()}


@dataclass(frozen=True)
class FilterCriteria:
    """Sparse field to substring pattern mapping used to search tags."""

    record_id: str | None = None
    band_number: str | None = None
    date: str | None = None
    location: str | None = None
    species: str | None = None
    age: str | None = None
    sex: str | None = None
    notes: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, object] | None) -> "FilterCriteria":
        """Build criteria from camelCase keys, ignoring unknown keys."""
        data = data or {}
        return cls(
            **{
                name: _optional_str(data.get(CAMEL_NAMES[name]))
                for name in FILTER_FIELDS
            }
        )

    def active(self) -> dict[str, str]:
        """Return non-blank patterns keyed by attribute name."""
        active: dict[str, str] = {}
        for name in FILTER_FIELDS:
            value = getattr(self, name)
            if value is not None and value.strip():
                active[name] = value
        return active

    def is_empty(self) -> bool:
        return not self.active()

    def matches(self, tag: PhotoTag) -> bool:
        """Return true when every active pattern is a substring of the tag field.

        Matching ignores case, the same policy as the tag store search.
        """
        for name, pattern in self.active().items():
            value = getattr(tag, name) or ""
            if pattern.casefold() not in value.casefold():
                return False
        return True

    def to_dict(self) -> dict[str, str]:
        return {CAMEL_NAMES[name]: value for name, value in self.active().items()}
