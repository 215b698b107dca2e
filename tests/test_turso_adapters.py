"""Tests for the Turso client and tag repository."""

import asyncio
import json
import re

import httpx
import pytest

from photo_tagger.adapters.turso_client import HttpxTursoClient
from photo_tagger.adapters.turso_tag_repository import (
    SCHEMA_STATEMENTS,
    TursoTagRepository,
    generate_tag_id,
)
from photo_tagger.domain.tags import FilterCriteria, TagPatch
from photo_tagger.errors import BackendUnavailable, ConfigurationMissing, NotFound
from tests.conftest import make_tag

_COLUMNS = [
    "id",
    "photoId",
    "recordId",
    "bandNumber",
    "date",
    "location",
    "species",
    "age",
    "sex",
    "firstPhotoNumber",
    "lastPhotoNumber",
    "wrpPlumageCode",
    "notes",
    "createdAt",
    "updatedAt",
]


def _row(tag_id: str, photo_id: str, species: str, created_at: str) -> list[object]:
    return [
        tag_id,
        photo_id,
        "R1",
        "1234-56789",
        "2024-05-01",
        "North Marsh",
        species,
        "AHY",
        "M",
        None,
        None,
        None,
        None,
        created_at,
        None,
    ]


def _result(columns: list[str], rows: list[list[object]]) -> dict[str, object]:
    return {"results": {"columns": columns, "rows": rows}}


class _RecordingTurso:
    def __init__(self, results: list[list[dict[str, object]]] | None = None) -> None:
        self.statements: list[dict[str, object]] = []
        self.headers: list[str] = []
        self.results = results or []

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content.decode())
        self.statements.extend(payload["statements"])
        self.headers.append(request.headers["Authorization"])
        body = self.results.pop(0) if self.results else [
            _result([], []) for _ in payload["statements"]
        ]
        return httpx.Response(200, json=body)


def _repository(recorder: _RecordingTurso) -> TursoTagRepository:
    client = HttpxTursoClient(
        url="https://tags.example.turso.io",
        auth_token="turso-token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(recorder.handler)),
    )
    return TursoTagRepository(client)


def test_generate_tag_id_format() -> None:
    first = generate_tag_id()
    second = generate_tag_id()

    assert re.fullmatch(r"tag_\d+_[0-9a-z]{9}", first)
    assert first != second


def test_add_tag_inserts_row_with_null_optionals() -> None:
    recorder = _RecordingTurso()
    repository = _repository(recorder)

    tag_id = asyncio.run(repository.add_tag("photo-1", make_tag(notes="")))

    statement = recorder.statements[0]
    assert statement["q"].startswith("INSERT INTO photo_tags")
    assert statement["params"][0] == tag_id
    assert statement["params"][1] == "photo-1"
    assert statement["params"][8] == "M"
    assert statement["params"][9:13] == [None, None, None, None]
    assert recorder.headers == ["Bearer turso-token"]


def test_get_tags_maps_columns_onto_rows() -> None:
    recorder = _RecordingTurso(
        results=[
            [
                _result(
                    _COLUMNS,
                    [
                        _row("tag_2", "photo-1", "Yellow Warbler", "2024-05-02"),
                        _row("tag_1", "photo-1", "Song Sparrow", "2024-05-01"),
                    ],
                )
            ]
        ]
    )
    repository = _repository(recorder)

    tags = asyncio.run(repository.get_tags("photo-1"))

    assert [tag.id for tag in tags] == ["tag_2", "tag_1"]
    assert tags[0].species == "Yellow Warbler"
    assert tags[0].notes is None
    assert "ORDER BY createdAt DESC" in recorder.statements[0]["q"]
    assert recorder.statements[0]["params"] == ["photo-1"]


def test_search_tags_builds_escaped_like_clauses() -> None:
    recorder = _RecordingTurso()
    repository = _repository(recorder)

    asyncio.run(
        repository.search_tags(FilterCriteria(species="warbler", band_number="12_3%"))
    )

    statement = recorder.statements[0]
    assert "bandNumber LIKE ? ESCAPE" in statement["q"]
    assert "species LIKE ? ESCAPE" in statement["q"]
    assert statement["params"] == ["%12\\_3\\%%", "%warbler%"]


def test_update_tag_sets_only_patched_fields() -> None:
    recorder = _RecordingTurso(results=[[_result(["id"], [["tag_1"]])]])
    repository = _repository(recorder)

    updated = asyncio.run(
        repository.update_tag("tag_1", TagPatch(species="Wilson's Warbler"))
    )

    statement = recorder.statements[0]
    assert updated is True
    assert statement["q"].startswith(
        "UPDATE photo_tags SET species = ?, updatedAt = ? WHERE id = ?"
    )
    assert statement["params"][0] == "Wilson's Warbler"
    assert statement["params"][-1] == "tag_1"


def test_update_tag_with_empty_patch_issues_no_query() -> None:
    recorder = _RecordingTurso()
    repository = _repository(recorder)

    assert asyncio.run(repository.update_tag("tag_1", TagPatch())) is False
    assert recorder.statements == []


def test_update_unknown_tag_raises_not_found() -> None:
    recorder = _RecordingTurso(results=[[_result(["id"], [])]])
    repository = _repository(recorder)

    with pytest.raises(NotFound):
        asyncio.run(repository.update_tag("missing", TagPatch(sex="F")))


def test_delete_tag_is_idempotent() -> None:
    recorder = _RecordingTurso()
    repository = _repository(recorder)

    asyncio.run(repository.delete_tag("tag_1"))
    asyncio.run(repository.delete_tag("tag_1"))

    assert [s["params"] for s in recorder.statements] == [["tag_1"], ["tag_1"]]


def test_init_schema_sends_one_batch() -> None:
    recorder = _RecordingTurso()
    repository = _repository(recorder)

    asyncio.run(repository.init_schema())

    assert len(recorder.headers) == 1
    assert len(recorder.statements) == len(SCHEMA_STATEMENTS)
    assert "CREATE TABLE IF NOT EXISTS photo_tags" in recorder.statements[0]["q"]


def test_unconfigured_repository_reads_empty_and_rejects_writes() -> None:
    repository = TursoTagRepository(None)

    assert repository.configured is False
    assert asyncio.run(repository.get_tags("photo-1")) == []
    assert asyncio.run(repository.search_tags(FilterCriteria(species="x"))) == []
    with pytest.raises(ConfigurationMissing):
        asyncio.run(repository.add_tag("photo-1", make_tag()))
    with pytest.raises(ConfigurationMissing):
        asyncio.run(repository.delete_tags_for_photo("photo-1"))


def test_statement_error_raises_backend_unavailable() -> None:
    recorder = _RecordingTurso(results=[[{"error": {"message": "no such table"}}]])
    repository = _repository(recorder)

    with pytest.raises(BackendUnavailable, match="no such table"):
        asyncio.run(repository.get_tags("photo-1"))


def test_http_error_raises_backend_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    client = HttpxTursoClient(
        url="https://tags.example.turso.io",
        auth_token="bad",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(BackendUnavailable, match="401"):
        asyncio.run(client.execute("SELECT 1"))


def test_non_json_body_raises_backend_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway error</html>")

    client = HttpxTursoClient(
        url="https://tags.example.turso.io",
        auth_token="turso-token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(BackendUnavailable, match="malformed"):
        asyncio.run(client.execute("SELECT 1"))
