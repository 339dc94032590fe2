"""
Pytest configuration and fixtures for photodiary tests.
"""

import io
from collections.abc import Generator

import pytest
from PIL import Image

from photodiary.config import get_config
from photodiary.error_handling import NotFoundError
from photodiary.models.image import SourceMetadata
from photodiary.monitoring import PerformanceMonitor


def create_test_image(format_type: str = "JPEG", size: tuple[int, int] = (100, 100), mode: str = "RGB") -> bytes:
    """Create a test image in memory."""
    color = (255, 0, 0, 128) if "A" in mode else "red"
    image = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    image.save(buffer, format=format_type)
    return buffer.getvalue()


def create_noise_image(size: tuple[int, int] = (200, 200)) -> bytes:
    """Create a PNG with enough detail for quality settings to matter."""
    image = Image.effect_noise(size, 64).convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeImageSource:
    """In-memory stand-in for the Drive service."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[SourceMetadata, bytes]] = {}
        self.thumbnails: dict[str, tuple[bytes, str]] = {}
        self.downloads: list[str] = []
        self.thumbnail_requests: list[tuple[str, int | None]] = []

    def add_file(
        self,
        identifier: str,
        data: bytes,
        mime_type: str | None,
        name: str | None = None,
        size: int | None = None,
        thumbnail: bytes | None = None,
        thumbnail_type: str = "image/jpeg",
    ) -> None:
        link = f"https://lh3.googleusercontent.com/{identifier}=s220" if thumbnail is not None else None
        metadata = SourceMetadata(
            identifier=identifier,
            name=name,
            mime_type=mime_type,
            size=size if size is not None else len(data),
            thumbnail_link=link,
        )
        self.files[identifier] = (metadata, data)
        if thumbnail is not None:
            self.thumbnails[identifier] = (thumbnail, thumbnail_type)

    def get_metadata(self, identifier: str) -> SourceMetadata:
        if identifier not in self.files:
            raise NotFoundError(f"Drive file {identifier} not found or not accessible")
        return self.files[identifier][0]

    def download(self, identifier: str, max_bytes: int | None = None) -> bytes:
        self.downloads.append(identifier)
        if identifier not in self.files:
            raise NotFoundError(f"Drive file {identifier} not found or not accessible")
        return self.files[identifier][1]

    def download_thumbnail(self, metadata: SourceMetadata, width: int | None = None) -> tuple[bytes, str | None]:
        self.thumbnail_requests.append((metadata.identifier, width))
        if metadata.identifier not in self.thumbnails:
            raise NotFoundError(f"Drive has no thumbnail for {metadata.identifier}", code="thumbnail_unavailable")
        return self.thumbnails[metadata.identifier]

    def list_permissions(self, identifier: str) -> list[dict]:
        return [{"id": "anyone", "type": "anyone", "role": "reader"}]

    def check_connection(self) -> bool:
        return True


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("SESSION_SECRET", "test-session-secret")
    for key in (
        "GOOGLE_CLIENT_EMAIL",
        "GOOGLE_PRIVATE_KEY",
        "DEFAULT_IMAGE_QUALITY",
        "THUMBNAIL_MAX_WIDTH",
        "THUMBNAIL_CACHE_MAX_AGE",
        "FULL_CACHE_MAX_AGE",
        "MAX_FILE_SIZE",
        "UPSTREAM_TIMEOUT",
        "DEV_USER_ID",
    ):
        monkeypatch.delenv(key, raising=False)
    get_config().clear_cache()
    yield
    get_config().clear_cache()


@pytest.fixture
def fake_source() -> FakeImageSource:
    return FakeImageSource()


@pytest.fixture
def monitor() -> PerformanceMonitor:
    return PerformanceMonitor()


@pytest.fixture
def jpeg_image_data() -> bytes:
    return create_test_image("JPEG", (400, 300))


@pytest.fixture
def png_image_data() -> bytes:
    return create_test_image("PNG", (400, 300))


@pytest.fixture
def heic_image_data() -> bytes:
    """HEIC test image; needs the HEIF encoder bundled with pillow-heif."""
    import photodiary.services.image_processor  # noqa: F401  registers the HEIF plugin

    image = Image.new("RGB", (64, 48), color="blue")
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="HEIF", quality=90)
    except (KeyError, OSError, ValueError) as e:
        pytest.skip(f"HEIF encoder unavailable: {e}")
    return buffer.getvalue()
