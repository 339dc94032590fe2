"""Source fetcher: turns a Drive file id into an image artifact."""

from typing import Protocol

from ..config import get_max_file_size
from ..error_handling import AssetTooLargeError, PhotoDiaryError, UnsupportedTypeError
from ..logging_config import get_logger
from ..models.image import ImageArtifact, ImageVariant, SourceMetadata, guess_content_type, is_image

logger = get_logger(__name__)

FALLBACK_CONTENT_TYPE = "image/jpeg"


class ImageSource(Protocol):
    """What the fetcher needs from the source system."""

    def get_metadata(self, identifier: str) -> SourceMetadata: ...

    def download(self, identifier: str, max_bytes: int | None = None) -> bytes: ...

    def download_thumbnail(self, metadata: SourceMetadata, width: int | None = None) -> tuple[bytes, str | None]: ...


def resolve_content_type(mime_type: str | None, file_name: str | None) -> str:
    """
    Pick the content type to label fetched bytes with.

    Drive reports some uploads as ``application/octet-stream``; the extension
    is more useful than that for images.
    """
    if mime_type and mime_type.lower().startswith("image/"):
        return mime_type
    return guess_content_type(file_name) or mime_type or FALLBACK_CONTENT_TYPE


class SourceFetcher:
    """Fetches image bytes and metadata, checking the type before downloading."""

    def __init__(self, source: ImageSource, max_file_size: int | None = None) -> None:
        self.source = source
        self.max_file_size = max_file_size if max_file_size is not None else get_max_file_size()

    def fetch(self, identifier: str, variant: ImageVariant, width: int | None = None) -> ImageArtifact:
        """
        Fetch an image artifact.

        Args:
            identifier: Source file id
            variant: Thumbnail requests try the provider thumbnail first
            width: Width hint for the provider thumbnail

        Returns:
            ImageArtifact: Raw bytes with declared type and name

        Raises:
            NotFoundError: If the asset is missing or inaccessible
            UnsupportedTypeError: If the asset is not an image
            AssetTooLargeError: If the asset exceeds the size ceiling
            UpstreamError: If the source system fails
        """
        metadata = self.source.get_metadata(identifier)
        self._check_metadata(metadata)

        if variant is ImageVariant.THUMBNAIL:
            artifact = self._fetch_provider_thumbnail(metadata, width)
            if artifact is not None:
                return artifact

        data = self.source.download(identifier, max_bytes=self.max_file_size)
        logger.debug("source_fetched", file_id=identifier, variant=variant.value, file_size=len(data))
        return ImageArtifact(
            identifier=identifier,
            mime_type=resolve_content_type(metadata.mime_type, metadata.name),
            data=data,
            file_name=metadata.name,
        )

    def _check_metadata(self, metadata: SourceMetadata) -> None:
        if not is_image(metadata.mime_type, metadata.name):
            raise UnsupportedTypeError(
                f"File {metadata.identifier} is not an image: {metadata.mime_type}",
                code="not_an_image",
                details={"file_id": metadata.identifier, "mime_type": metadata.mime_type, "file_name": metadata.name},
            )

        if metadata.size is not None and metadata.size > self.max_file_size:
            raise AssetTooLargeError(
                f"File {metadata.identifier} is {metadata.size} bytes, limit is {self.max_file_size}",
                details={"file_id": metadata.identifier, "file_size": metadata.size, "max_bytes": self.max_file_size},
            )

    def _fetch_provider_thumbnail(self, metadata: SourceMetadata, width: int | None) -> ImageArtifact | None:
        try:
            data, content_type = self.source.download_thumbnail(metadata, width)
        except PhotoDiaryError as e:
            logger.info("provider_thumbnail_fallback", file_id=metadata.identifier, reason=e.code)
            return None

        if not data:
            logger.info("provider_thumbnail_fallback", file_id=metadata.identifier, reason="empty_thumbnail")
            return None

        # Sign-in redirects and error pages come back as HTML with a 200
        if not content_type or not content_type.strip().lower().startswith("image/"):
            logger.info(
                "provider_thumbnail_fallback",
                file_id=metadata.identifier,
                reason="non_image_thumbnail",
                content_type=content_type,
            )
            return None

        # Provider thumbnails are standard raster images, never legacy-encoded
        return ImageArtifact(
            identifier=metadata.identifier,
            mime_type=content_type.split(";")[0].strip(),
            data=data,
            file_name=None,
        )
