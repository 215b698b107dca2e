"""ASGI entrypoint for the photo tagger API."""

import uvicorn

from photo_tagger.api.app import create_app
from photo_tagger.containers import build_container

container = build_container()
app = create_app(container)


def main() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(
        app,
        host=container.settings.api_host,
        port=container.settings.api_port,
        log_level=container.settings.log_level.lower(),
    )
