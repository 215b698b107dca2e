"""FastAPI application factory."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from photo_tagger.api.models import (
    CreateTagRequest,
    DeletePhotoRequest,
    FetchPhotosRequest,
    UpdateMetadataRequest,
    UpdateTagRequest,
)
from photo_tagger.app_logging import configure_logging
from photo_tagger.containers import AppContainer
from photo_tagger.domain.photos import PhotoMetadata
from photo_tagger.domain.tags import FilterCriteria, NewTag, TagPatch
from photo_tagger.errors import NotFound, PhotoTaggerError, ValidationError

_ERROR_STATUS = {
    ValidationError: 400,
    NotFound: 404,
}
THUMBNAIL_CACHE_CONTROL = "public, max-age=31536000, immutable"


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(PhotoTaggerError)
    async def handle_app_error(request: Request, exc: PhotoTaggerError) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), 500)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400, content={"error": _describe_validation_error(exc)}
        )

    def _container(request: Request) -> AppContainer:
        return request.app.state.container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/tags")
    async def get_tags(request: Request, photoId: str = "") -> dict[str, object]:  # noqa: N803
        """Return tags for a photo."""
        tags = await _container(request).tag_service.get_tags(photoId)
        return {"success": True, "tags": [tag.to_dict() for tag in tags]}

    @app.post("/tags")
    async def create_tag(body: CreateTagRequest, request: Request) -> dict[str, object]:
        """Create a tag for a photo."""
        tag = NewTag.from_mapping(body.tag.to_mapping())
        tag_id = await _container(request).tag_service.add_tag(body.photo_id, tag)
        return {"success": True, "tagId": tag_id}

    @app.put("/tags")
    async def update_tag(body: UpdateTagRequest, request: Request) -> dict[str, object]:
        """Apply a sparse update to a tag."""
        patch = TagPatch.from_mapping(body.tag.to_mapping())
        updated = await _container(request).tag_service.update_tag(body.tag_id, patch)
        return {"success": True, "updated": updated}

    @app.delete("/tags")
    async def delete_tag(request: Request, tagId: str = "") -> dict[str, object]:  # noqa: N803
        """Delete a tag; unknown ids succeed."""
        await _container(request).tag_service.delete_tag(tagId)
        return {"success": True}

    @app.post("/photos/fetch")
    async def fetch_photos(
        body: FetchPhotosRequest, request: Request
    ) -> dict[str, object]:
        """List a folder with metadata decoded from descriptions."""
        page = await _container(request).photo_service.list_photos(
            body.folder_id,
            page_token=body.page_token,
            include_folders=body.include_folders,
        )
        return {
            "success": True,
            "photos": [item.to_dict() for item in page.files],
            "nextPageToken": page.next_page_token,
        }

    @app.post("/photos/search")
    async def search_photos(
        request: Request, body: dict[str, object] | None = Body(default=None)
    ) -> dict[str, object]:
        """Search tags and return the photos they belong to."""
        body = body or {}
        raw_criteria = body.get("criteria", body)
        if not isinstance(raw_criteria, dict):
            raise ValidationError("criteria must be an object")
        criteria = FilterCriteria.from_mapping(raw_criteria)
        logger.info("Searching photos with criteria %s", criteria.to_dict())
        result = await _container(request).search_service.search(criteria)
        return {
            "photos": [photo.to_dict() for photo in result.photos],
            "mode": result.mode.value,
            "backendAvailable": result.backend_available,
            "failedPhotoIds": result.failed_photo_ids,
        }

    @app.post("/photos/upload")
    async def upload_photo(
        request: Request,
        file: UploadFile | None = File(default=None),
        folderId: str | None = Form(default=None),  # noqa: N803
        metadata: str | None = Form(default=None),
    ) -> dict[str, object]:
        """Upload a photo to Drive and record its metadata as a tag."""
        if file is None:
            raise ValidationError("Missing file or folderId")
        parsed = _parse_metadata_field(metadata)
        content = await file.read()
        outcome = await _container(request).photo_service.upload_photo(
            content,
            file.filename or "photo.jpg",
            folderId,
            parsed,
            mime_type=file.content_type or "image/jpeg",
        )
        return {
            "success": True,
            "fileId": outcome.result.id,
            "webViewLink": outcome.result.web_view_link,
            "metadata": outcome.result.metadata.to_dict(),
            "tagId": outcome.tag_id,
        }

    @app.post("/photos/delete")
    async def delete_photo(
        body: DeletePhotoRequest, request: Request
    ) -> dict[str, object]:
        """Delete a photo from Drive, then its tags."""
        outcome = await _container(request).photo_service.delete_photo(body.photo_id)
        response: dict[str, object] = {
            "success": True,
            "tagsDeleted": outcome.tags_deleted,
        }
        if outcome.error:
            response["warning"] = f"Photo deleted but tags remain: {outcome.error}"
        return response

    @app.post("/photos/update-metadata")
    async def update_metadata(
        body: UpdateMetadataRequest, request: Request
    ) -> dict[str, object]:
        """Rewrite the metadata stored in a Drive file description."""
        metadata = PhotoMetadata.from_mapping(body.metadata.to_mapping())
        await _container(request).photo_service.update_metadata(body.file_id, metadata)
        return {"success": True, "message": "Metadata updated successfully"}

    @app.get("/photos/thumbnail/{file_id}")
    async def thumbnail(file_id: str, request: Request) -> Response:
        """Proxy image bytes from Drive with long-lived cache headers."""
        image = await _container(request).photo_service.thumbnail(file_id)
        return Response(
            content=image.content,
            media_type=image.mime_type,
            headers={"Cache-Control": THUMBNAIL_CACHE_CONTROL},
        )

    @app.post("/init-db")
    async def init_db(request: Request) -> dict[str, object]:
        """Create the tag table and indexes."""
        await _container(request).tag_service.initialize_store()
        return {"success": True, "message": "Database table created successfully"}

    @app.get("/debug/tags")
    async def debug_tags(request: Request, limit: int = 10) -> dict[str, object]:
        """Return the most recent tag rows."""
        rows = await _container(request).tag_service.recent_tags(limit)
        return {"success": True, "count": len(rows), "tags": rows}

    return app


def _parse_metadata_field(raw: str | None) -> PhotoMetadata:
    """Parse the JSON metadata form field of an upload."""
    if not raw:
        return PhotoMetadata()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("metadata must be a JSON object") from exc
    if not isinstance(payload, dict):
        raise ValidationError("metadata must be a JSON object")
    return PhotoMetadata.from_mapping(payload)


def _describe_validation_error(exc: RequestValidationError) -> str:
    """Summarize a request validation error as one message."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        if error.get("type") == "missing":
            messages.append(f"{location} is required")
        else:
            messages.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(messages) or "Invalid request"
