"""
FastAPI application for the photodiary image proxy.

Run with ``photodiary`` (see ``main``) or ``uvicorn photodiary.main:app``.
"""

import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status

from photodiary import __version__
from photodiary.api.routes import api_router
from photodiary.config import get_env
from photodiary.error_handling import PhotoDiaryError
from photodiary.logging_config import configure_structured_logging, get_logger, log_error
from photodiary.services.auth import SessionAuthService
from photodiary.services.drive import DriveService
from photodiary.services.fetcher import ImageSource, SourceFetcher
from photodiary.services.image_processor import ImageProcessor, get_image_processor
from photodiary.services.pipeline import ImagePipeline

logger = get_logger(__name__)


async def photodiary_error_handler(request: Request, exc: PhotoDiaryError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error(exc, {"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": "internal_error"},
    )


def build_pipeline(source: ImageSource, processor: ImageProcessor | None = None) -> ImagePipeline:
    return ImagePipeline(SourceFetcher(source), processor or get_image_processor())


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.pipeline is None:
        app.state.source = DriveService.from_config()
        app.state.pipeline = build_pipeline(app.state.source, app.state.processor)
    yield
    app.state.pipeline.monitor.log_summary()


def create_app(
    source: ImageSource | None = None,
    processor: ImageProcessor | None = None,
    auth_service: SessionAuthService | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        source: Source system client; a Drive service is created at startup when omitted
        processor: Image processor (defaults to one built from configuration)
        auth_service: Session verifier (defaults to one built from configuration)
    """
    configure_structured_logging()

    app = FastAPI(title="Photo Diary Image Proxy", version=__version__, lifespan=lifespan)
    app.state.started_at = time.time()
    app.state.source = source
    app.state.processor = processor
    app.state.pipeline = build_pipeline(source, processor) if source is not None else None
    app.state.auth_service = auth_service or SessionAuthService()

    app.add_exception_handler(PhotoDiaryError, photodiary_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(api_router)
    return app


app = create_app()


def main() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run(
        "photodiary.main:app",
        host=str(get_env("HOST", "0.0.0.0")),
        port=int(get_env("PORT", 8080, int)),
        log_config=None,
    )


if __name__ == "__main__":
    main()
