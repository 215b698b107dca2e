"""Tests for container wiring."""

import asyncio
import base64
import json

from photo_tagger.config import Settings
from photo_tagger.containers import build_container


def test_build_container_creates_services(settings: Settings) -> None:
    container = build_container(settings)

    assert container.tag_service.configured is True
    assert container.search_service.photo_repository.configured is False
    asyncio.run(container.close_resources())


def test_build_container_without_credentials_degrades() -> None:
    container = build_container(Settings(_env_file=None))

    assert container.tag_service.configured is False
    assert container.photo_service.photo_repository.configured is False
    asyncio.run(container.close_resources())


def test_build_container_ignores_unusable_service_account_key() -> None:
    key = base64.b64encode(json.dumps({"type": "service_account"}).encode()).decode()

    container = build_container(
        Settings(_env_file=None, google_service_account_key=key)
    )

    assert container.photo_service.photo_repository.configured is False
    asyncio.run(container.close_resources())
