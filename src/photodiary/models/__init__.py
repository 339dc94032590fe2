"""Data models for the photodiary image proxy."""

from .image import (
    ImageArtifact,
    ImageRequest,
    ImageVariant,
    LegacyEncoding,
    SourceMetadata,
    guess_content_type,
    is_image,
    is_legacy_encoding,
)

__all__ = [
    "ImageArtifact",
    "ImageRequest",
    "ImageVariant",
    "LegacyEncoding",
    "SourceMetadata",
    "guess_content_type",
    "is_image",
    "is_legacy_encoding",
]
