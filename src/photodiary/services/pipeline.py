"""
Image proxy pipeline: fetch, normalize, transform, emit.

Each stage is a plain method so the API layer can run them one at a time on
worker threads and stop between stages when the client has gone away.
``run`` chains all four for synchronous callers.
"""

from dataclasses import dataclass

from ..config import get_full_cache_max_age, get_thumbnail_cache_max_age, get_thumbnail_max_width
from ..logging_config import get_logger
from ..models.image import ImageArtifact, ImageRequest, ImageVariant
from ..monitoring import PerformanceMonitor, get_performance_monitor
from .fetcher import SourceFetcher
from .image_processor import ImageProcessor

logger = get_logger(__name__)


def operation_type(variant: ImageVariant) -> str:
    """Monitoring bucket of a variant."""
    return "thumbnail" if variant is ImageVariant.THUMBNAIL else "full-image"


@dataclass(frozen=True)
class ImageResponse:
    """Final bytes plus the header contract of the proxy endpoint."""

    data: bytes
    content_type: str
    cache_control: str

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": self.content_type,
            "Content-Length": str(len(self.data)),
            "Cache-Control": self.cache_control,
            "Access-Control-Allow-Origin": "*",
        }


class ImagePipeline:
    """Request-scoped image pipeline over long-lived collaborators."""

    def __init__(
        self,
        fetcher: SourceFetcher,
        processor: ImageProcessor,
        monitor: PerformanceMonitor | None = None,
        thumbnail_max_width: int | None = None,
        thumbnail_cache_max_age: int | None = None,
        full_cache_max_age: int | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.processor = processor
        self.monitor = monitor if monitor is not None else get_performance_monitor()
        self.thumbnail_max_width = thumbnail_max_width if thumbnail_max_width is not None else get_thumbnail_max_width()
        self.thumbnail_cache_max_age = (
            thumbnail_cache_max_age if thumbnail_cache_max_age is not None else get_thumbnail_cache_max_age()
        )
        self.full_cache_max_age = full_cache_max_age if full_cache_max_age is not None else get_full_cache_max_age()

    def fetch(self, request: ImageRequest) -> ImageArtifact:
        """Source fetcher stage."""
        return self.fetcher.fetch(
            request.identifier, request.variant, request.effective_width(self.thumbnail_max_width)
        )

    def normalize(self, artifact: ImageArtifact) -> ImageArtifact:
        """Format normalizer stage; raises ConversionError on failure."""
        return self.processor.normalize(artifact)

    def transform(self, artifact: ImageArtifact, request: ImageRequest) -> ImageArtifact:
        """Transform stage with best-effort compression.

        Returns the transformed artifact, or the input artifact unchanged when
        the transform failed.
        """
        transformed = self.processor.transform(
            artifact,
            max_width=request.effective_width(self.thumbnail_max_width),
            quality=request.target_quality,
        )
        return transformed if transformed is not None else artifact

    def cache_control(self, variant: ImageVariant) -> str:
        max_age = self.thumbnail_cache_max_age if variant is ImageVariant.THUMBNAIL else self.full_cache_max_age
        return f"public, max-age={max_age}, immutable"

    def emit(self, artifact: ImageArtifact, variant: ImageVariant) -> ImageResponse:
        """Response emitter stage."""
        response = ImageResponse(
            data=artifact.data,
            content_type=artifact.mime_type,
            cache_control=self.cache_control(variant),
        )
        logger.info(
            "image_served",
            file_id=artifact.identifier,
            variant=variant.value,
            content_type=response.content_type,
            content_length=len(response.data),
            width=artifact.width,
            height=artifact.height,
        )
        return response

    def run(self, request: ImageRequest) -> ImageResponse:
        """Run all stages for one request."""
        with self.monitor.timer(operation_type(request.variant)):
            artifact = self.fetch(request)
            artifact = self.normalize(artifact)
            artifact = self.transform(artifact, request)
            return self.emit(artifact, request.variant)
