"""Turso-backed tag repository."""

import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from photo_tagger.adapters.turso_client import TursoClient
from photo_tagger.domain.tags import (
    CAMEL_NAMES,
    OPTIONAL_TAG_FIELDS,
    TAG_FIELDS,
    FilterCriteria,
    NewTag,
    PhotoTag,
    TagPatch,
)
from photo_tagger.errors import ConfigurationMissing, NotFound
from photo_tagger.services.tags import TagRepository

_logger = logging.getLogger(__name__)

_TABLE = "photo_tags"
_ID_ALPHABET = string.digits + string.ascii_lowercase

SCHEMA_STATEMENTS = [
    f"""
    CREATE TABLE IF NOT EXISTS {_TABLE} (
      id TEXT PRIMARY KEY,
      photoId TEXT NOT NULL,
      recordId TEXT,
      bandNumber TEXT,
      date TEXT,
      location TEXT,
      species TEXT,
      age TEXT,
      sex TEXT,
      firstPhotoNumber TEXT,
      lastPhotoNumber TEXT,
      wrpPlumageCode TEXT,
      notes TEXT,
      createdAt TEXT NOT NULL,
      updatedAt TEXT
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_photo_tags_photoId ON {_TABLE}(photoId)",
    f"CREATE INDEX IF NOT EXISTS idx_photo_tags_recordId ON {_TABLE}(recordId)",
    f"CREATE INDEX IF NOT EXISTS idx_photo_tags_bandNumber ON {_TABLE}(bandNumber)",
    f"CREATE INDEX IF NOT EXISTS idx_photo_tags_species ON {_TABLE}(species)",
]


def generate_tag_id() -> str:
    """Return a time-based id with a random suffix."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"tag_{int(time.time() * 1000)}_{suffix}"


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass
class TursoTagRepository(TagRepository):
    """Tag repository over the Turso HTTP API.

    Without a client, reads return empty results and writes raise
    ``ConfigurationMissing``.
    """

    client: TursoClient | None

    def __post_init__(self) -> None:
        if self.client is None:
            _logger.warning(
                "Turso database not configured. Set TURSO_CONNECTION_URL and "
                "TURSO_AUTH_TOKEN to enable tags."
            )

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _require_client(self) -> TursoClient:
        if self.client is None:
            raise ConfigurationMissing("Turso database not configured")
        return self.client

    async def get_tags(self, photo_id: str) -> list[PhotoTag]:
        """Return tags for a photo, newest first."""
        if self.client is None:
            return []
        rows = await self.client.execute(
            f"SELECT * FROM {_TABLE} WHERE photoId = ? ORDER BY createdAt DESC",
            [photo_id],
        )
        _logger.debug("Found %s tags for photo %s", len(rows), photo_id)
        return [PhotoTag.from_row(row) for row in rows]

    async def add_tag(self, photo_id: str, tag: NewTag) -> str:
        """Insert a tag row and return its id."""
        client = self._require_client()
        tag_id = generate_tag_id()
        columns = ["id", "photoId", *(CAMEL_NAMES[name] for name in TAG_FIELDS)]
        columns.append("createdAt")
        params: list[object] = [tag_id, photo_id]
        for name in TAG_FIELDS:
            value = getattr(tag, name)
            if name in OPTIONAL_TAG_FIELDS and not value:
                value = None
            params.append(value)
        params.append(_now())
        placeholders = ", ".join("?" for _ in columns)
        await client.execute(
            f"INSERT INTO {_TABLE} ({', '.join(columns)}) VALUES ({placeholders})",
            params,
        )
        _logger.info("Tag %s added for photo %s", tag_id, photo_id)
        return tag_id

    async def update_tag(self, tag_id: str, patch: TagPatch) -> bool:
        """Apply a sparse patch; an empty patch issues no query."""
        client = self._require_client()
        changes = patch.changes()
        if not changes:
            return False
        assignments = [f"{CAMEL_NAMES[name]} = ?" for name in changes]
        assignments.append("updatedAt = ?")
        params: list[object] = [*changes.values(), _now(), tag_id]
        rows = await client.execute(
            f"UPDATE {_TABLE} SET {', '.join(assignments)} WHERE id = ? RETURNING id",
            params,
        )
        if not rows:
            raise NotFound(f"Tag {tag_id} not found")
        return True

    async def delete_tag(self, tag_id: str) -> None:
        client = self._require_client()
        await client.execute(f"DELETE FROM {_TABLE} WHERE id = ?", [tag_id])

    async def delete_tags_for_photo(self, photo_id: str) -> None:
        client = self._require_client()
        await client.execute(f"DELETE FROM {_TABLE} WHERE photoId = ?", [photo_id])
        _logger.info("Deleted all tags for photo %s", photo_id)

    async def search_tags(self, criteria: FilterCriteria) -> list[PhotoTag]:
        """Return tags where every active field contains its pattern."""
        if self.client is None:
            return []
        clauses = ["1=1"]
        params: list[object] = []
        for name, value in criteria.active().items():
            clauses.append(f"{CAMEL_NAMES[name]} LIKE ? ESCAPE '\\'")
            params.append(_like_pattern(value))
        rows = await self.client.execute(
            f"SELECT * FROM {_TABLE} WHERE {' AND '.join(clauses)} "
            "ORDER BY createdAt DESC",
            params,
        )
        return [PhotoTag.from_row(row) for row in rows]

    async def init_schema(self) -> None:
        client = self._require_client()
        await client.execute_batch([(statement, []) for statement in SCHEMA_STATEMENTS])

    async def recent_tags(self, limit: int) -> list[dict[str, object]]:
        if self.client is None:
            return []
        return await self.client.execute(
            f"SELECT id, photoId, recordId, species FROM {_TABLE} "
            "ORDER BY createdAt DESC LIMIT ?",
            [limit],
        )
