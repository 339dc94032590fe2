"""Request-scoped image data models for the proxy pipeline."""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

# Extensions accepted as images when the declared MIME type is missing or generic
IMAGE_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".hif": "image/heif",
}


class ImageVariant(Enum):
    """Which source representation to request and which cache lifetime applies."""

    THUMBNAIL = "thumbnail"
    FULL = "full"

    @classmethod
    def parse(cls, value: str | None) -> "ImageVariant":
        """Parse a query value. Anything other than ``thumbnail`` means full."""
        if value and value.strip().lower() == cls.THUMBNAIL.value:
            return cls.THUMBNAIL
        return cls.FULL


class LegacyEncoding(Enum):
    """High-efficiency photographic encodings that browsers cannot decode."""

    HEIC = ("heic", frozenset({"image/heic", "image/heic-sequence"}), frozenset({".heic"}))
    HEIF = ("heif", frozenset({"image/heif", "image/heif-sequence"}), frozenset({".heif", ".hif"}))

    def __init__(self, label: str, mime_types: frozenset[str], extensions: frozenset[str]):
        self.label = label
        self.mime_types = mime_types
        self.extensions = extensions

    @classmethod
    def detect(cls, mime_type: str | None, file_name: str | None) -> "LegacyEncoding | None":
        """
        Match a declared MIME type or a file name extension against the known encodings.

        Both comparisons are case-insensitive. The MIME type wins when both match
        different members.

        Args:
            mime_type: Declared content type
            file_name: Original file name

        Returns:
            LegacyEncoding: Matching encoding, or None for standard formats
        """
        normalized_mime = (mime_type or "").split(";")[0].strip().lower()
        extension = Path(file_name).suffix.lower() if file_name else ""

        for encoding in cls:
            if normalized_mime in encoding.mime_types:
                return encoding
        for encoding in cls:
            if extension in encoding.extensions:
                return encoding
        return None


def is_legacy_encoding(mime_type: str | None, file_name: str | None) -> bool:
    """True when the asset needs conversion before it can be served or transformed."""
    return LegacyEncoding.detect(mime_type, file_name) is not None


def guess_content_type(file_name: str | None) -> str | None:
    """Map a file name extension to an image content type."""
    if not file_name:
        return None
    return IMAGE_CONTENT_TYPES.get(Path(file_name).suffix.lower())


def parse_int(value: str | int | None) -> int | None:
    """Parse a loose query value as an integer, None when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def is_image(mime_type: str | None, file_name: str | None) -> bool:
    """True when the declared type or the extension indicates an image."""
    if mime_type and mime_type.strip().lower().startswith("image/"):
        return True
    return guess_content_type(file_name) is not None


@dataclass(frozen=True)
class SourceMetadata:
    """Metadata of an asset in the source system."""

    identifier: str
    name: str | None
    mime_type: str | None
    size: int | None = None
    thumbnail_link: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.identifier,
            "name": self.name,
            "mimeType": self.mime_type,
            "size": self.size,
            "thumbnailLink": self.thumbnail_link,
        }


@dataclass(frozen=True)
class ImageArtifact:
    """Bytes flowing through the pipeline, with what is known about them."""

    identifier: str
    mime_type: str
    data: bytes
    file_name: str | None = None
    width: int | None = None
    height: int | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_legacy(self) -> bool:
        return is_legacy_encoding(self.mime_type, self.file_name)

    def evolve(self, **changes) -> "ImageArtifact":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class ImageRequest:
    """Caller-supplied parameters of one proxy request."""

    identifier: str
    variant: ImageVariant = ImageVariant.FULL
    target_width: int | None = None
    target_quality: int | None = None

    @classmethod
    def build(
        cls,
        identifier: str,
        variant: str | ImageVariant | None = None,
        width: str | int | None = None,
        quality: str | int | None = None,
        default_quality: int = 85,
    ) -> "ImageRequest":
        """
        Build a request, normalizing loose query values.

        Values that are not integers are ignored. Widths below 1 are dropped.
        A quality outside 1..100, or a missing one, becomes ``default_quality``.
        """
        width = parse_int(width)
        quality = parse_int(quality)
        if not isinstance(variant, ImageVariant):
            variant = ImageVariant.parse(variant)
        if width is not None and width < 1:
            width = None
        if quality is None or not 1 <= quality <= 100:
            quality = default_quality
        return cls(identifier=identifier, variant=variant, target_width=width, target_quality=quality)

    def effective_width(self, thumbnail_max_width: int) -> int | None:
        """Width to resize to, falling back to the thumbnail width for thumbnails."""
        if self.target_width is not None:
            return self.target_width
        if self.variant is ImageVariant.THUMBNAIL:
            return thumbnail_max_width
        return None
