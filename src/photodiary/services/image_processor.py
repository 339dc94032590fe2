"""Image processing service: legacy format normalization and web transforms."""

import io
from datetime import datetime
from pathlib import Path

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener  # type: ignore[import-untyped]

from ..config import get_default_quality
from ..error_handling import ConversionError
from ..logging_config import get_logger, log_error, log_performance
from ..models.image import ImageArtifact, LegacyEncoding

register_heif_opener()

logger = get_logger(__name__)

NORMALIZED_FORMAT = "PNG"
NORMALIZED_CONTENT_TYPE = "image/png"
OUTPUT_FORMAT = "JPEG"
OUTPUT_CONTENT_TYPE = "image/jpeg"

# Modes PNG stores without a lossy or lossless conversion step
PNG_NATIVE_MODES = ("RGB", "RGBA", "L", "LA")


class ImageProcessor:
    """Service converting legacy encodings and producing web-ready JPEGs."""

    def __init__(self, default_quality: int | None = None) -> None:
        """
        Initialize the image processor.

        Args:
            default_quality: JPEG quality used when a transform gets none
                (defaults to DEFAULT_IMAGE_QUALITY)
        """
        self.default_quality = default_quality if default_quality is not None else get_default_quality()

    def normalize(self, artifact: ImageArtifact) -> ImageArtifact:
        """
        Convert legacy-encoded images to PNG, pass everything else through.

        The conversion decodes at full quality and stores the pixels losslessly;
        all lossy compression is left to ``transform``. EXIF orientation is
        applied to the pixels since PNG output carries no EXIF.

        Args:
            artifact: Fetched image artifact

        Returns:
            ImageArtifact: The same artifact for standard formats, a PNG artifact otherwise

        Raises:
            ConversionError: If the legacy image cannot be decoded or re-encoded
        """
        encoding = LegacyEncoding.detect(artifact.mime_type, artifact.file_name)
        if encoding is None:
            return artifact

        start_time = datetime.now()
        try:
            with Image.open(io.BytesIO(artifact.data)) as image:
                image.load()
                converted = ImageOps.exif_transpose(image)
                if converted.mode not in PNG_NATIVE_MODES:
                    converted = converted.convert("RGBA" if "A" in converted.getbands() else "RGB")

                buffer = io.BytesIO()
                converted.save(buffer, format=NORMALIZED_FORMAT, compress_level=1)
                size = converted.size

            png_data = buffer.getvalue()
        except Exception as e:
            log_error(
                e,
                {
                    "operation": "normalize",
                    "file_id": artifact.identifier,
                    "encoding": encoding.label,
                    "original_file_size": artifact.size,
                },
            )
            raise ConversionError(
                f"Failed to convert {encoding.label.upper()} image {artifact.identifier}: {e}",
                code="legacy_conversion_failed",
                details={"file_id": artifact.identifier, "encoding": encoding.label, "mime_type": artifact.mime_type},
                original_exception=e,
            ) from e

        log_performance(
            "normalize",
            (datetime.now() - start_time).total_seconds(),
            file_id=artifact.identifier,
            encoding=encoding.label,
            size=size,
            original_file_size=artifact.size,
            converted_file_size=len(png_data),
        )

        file_name = str(Path(artifact.file_name).with_suffix(".png")) if artifact.file_name else None
        return artifact.evolve(
            mime_type=NORMALIZED_CONTENT_TYPE,
            data=png_data,
            file_name=file_name,
            width=size[0],
            height=size[1],
        )

    def transform(
        self, artifact: ImageArtifact, max_width: int | None = None, quality: int | None = None
    ) -> ImageArtifact | None:
        """
        Resize to a maximum width and recompress as JPEG, on a best-effort basis.

        Args:
            artifact: Normalized image artifact
            max_width: Target width; images at or below it keep their size
            quality: JPEG quality (1-100, higher is better quality)

        Returns:
            ImageArtifact: JPEG artifact, or None when the image could not be
            transformed and the caller should serve the input as is
        """
        if quality is None:
            quality = self.default_quality

        start_time = datetime.now()
        try:
            with Image.open(io.BytesIO(artifact.data)) as image:
                image = ImageOps.exif_transpose(image)
                original_size = image.size
                original_mode = image.mode

                image = self._to_rgb(image)

                target_size = self._calculate_resize_size(original_size, max_width)
                if target_size != original_size:
                    image = image.resize(target_size, Image.Resampling.LANCZOS)

                buffer = io.BytesIO()
                image.save(buffer, format=OUTPUT_FORMAT, quality=quality, optimize=True)

            jpeg_data = buffer.getvalue()
        except Exception as e:
            log_error(
                e,
                {
                    "operation": "transform",
                    "file_id": artifact.identifier,
                    "original_file_size": artifact.size,
                    "max_width": max_width,
                    "quality": quality,
                },
            )
            logger.warning(
                "best_effort_compression_fallback",
                file_id=artifact.identifier,
                content_type=artifact.mime_type,
                file_size=artifact.size,
            )
            return None

        log_performance(
            "transform",
            (datetime.now() - start_time).total_seconds(),
            file_id=artifact.identifier,
            original_size=original_size,
            target_size=target_size,
            original_mode=original_mode,
            original_file_size=artifact.size,
            output_file_size=len(jpeg_data),
            quality=quality,
        )

        return artifact.evolve(
            mime_type=OUTPUT_CONTENT_TYPE,
            data=jpeg_data,
            width=target_size[0],
            height=target_size[1],
        )

    def _to_rgb(self, image: Image.Image) -> Image.Image:
        """Flatten onto white where there is transparency; JPEG has no alpha."""
        if image.mode in ("RGB", "L"):
            return image
        if image.mode == "P":
            image = image.convert("RGBA")
        if image.mode in ("RGBA", "LA"):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return image.convert("RGB")

    def _calculate_resize_size(self, original_size: tuple[int, int], max_width: int | None) -> tuple[int, int]:
        """
        Calculate the output size for a maximum width, preserving aspect ratio.

        Args:
            original_size: Native size as (width, height)
            max_width: Requested width, or None to keep the native size

        Returns:
            tuple: Output size as (width, height); never larger than the native size
        """
        original_width, original_height = original_size
        if max_width is None or max_width >= original_width:
            return original_size

        new_height = max(1, round(original_height * max_width / original_width))
        return (max_width, new_height)


# Global image processor instance
_image_processor: ImageProcessor | None = None


def get_image_processor() -> ImageProcessor:
    """
    Get the global image processor instance.

    Returns:
        ImageProcessor: Global image processor instance
    """
    global _image_processor
    if _image_processor is None:
        _image_processor = ImageProcessor()
    return _image_processor
