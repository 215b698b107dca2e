"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from photo_tagger.adapters.drive_client import HttpxDriveClient, ServiceAccountTokenProvider
from photo_tagger.adapters.drive_photo_repository import DrivePhotoRepository
from photo_tagger.adapters.turso_client import HttpxTursoClient
from photo_tagger.adapters.turso_tag_repository import TursoTagRepository
from photo_tagger.config import (
    Settings,
    decode_service_account_key,
    normalize_turso_url,
)
from photo_tagger.errors import ConfigurationMissing
from photo_tagger.services.photos import PhotoService
from photo_tagger.services.search import SearchService
from photo_tagger.services.tags import TagService

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    tag_service: TagService
    photo_service: PhotoService
    search_service: SearchService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container.

    Missing Turso or Drive settings leave the matching repository without a
    client instead of failing startup.
    """
    resolved_settings = settings or Settings()

    turso_client: HttpxTursoClient | None = None
    if resolved_settings.tag_store_configured:
        turso_client = HttpxTursoClient.create(
            url=normalize_turso_url(resolved_settings.turso_connection_url),
            auth_token=str(resolved_settings.turso_auth_token),
            timeout=resolved_settings.http_timeout_seconds,
        )
    tag_repository = TursoTagRepository(turso_client)

    drive_client: HttpxDriveClient | None = None
    if resolved_settings.google_service_account_key:
        try:
            token_provider = ServiceAccountTokenProvider.from_info(
                decode_service_account_key(
                    resolved_settings.google_service_account_key
                )
            )
        except (ConfigurationMissing, ValueError):
            _logger.exception("Ignoring unusable Google service account key")
        else:
            drive_client = HttpxDriveClient.create(
                token_provider,
                timeout=resolved_settings.http_timeout_seconds,
            )
    photo_repository = DrivePhotoRepository(
        drive_client,
        page_size=resolved_settings.drive_page_size,
        thumbnail_path_prefix=resolved_settings.thumbnail_path_prefix,
    )

    tag_service = TagService(tag_repository)
    photo_service = PhotoService(
        photo_repository=photo_repository,
        tag_service=tag_service,
        default_folder_id=resolved_settings.google_drive_folder_id,
    )
    search_service = SearchService(
        tag_repository=tag_repository,
        photo_repository=photo_repository,
        max_concurrency=resolved_settings.search_max_concurrency,
        fetch_timeout_seconds=resolved_settings.search_fetch_timeout_seconds,
        retry_attempts=resolved_settings.retry_attempts,
        retry_delay_seconds=resolved_settings.retry_delay_seconds,
    )

    async def close_resources() -> None:
        if turso_client is not None:
            await turso_client.close()
        if drive_client is not None:
            await drive_client.close()

    return AppContainer(
        settings=resolved_settings,
        tag_service=tag_service,
        photo_service=photo_service,
        search_service=search_service,
        close_resources=close_resources,
    )
