"""
End-to-end tests for the image proxy HTTP API.
"""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from photodiary.main import create_app
from photodiary.services.auth import SessionAuthService
from photodiary.services.image_processor import ImageProcessor, get_image_processor
from tests.conftest import create_noise_image, create_test_image

pytestmark = pytest.mark.integration

SECRET = "integration-session-secret"


def decode(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.fixture
def client(fake_source):
    app = create_app(source=fake_source, processor=ImageProcessor(default_quality=85))
    with TestClient(app) as test_client:
        yield test_client


class TestImageEndpoint:
    """Test cases for GET /images/{id}."""

    def test_heic_full_image(self, client, fake_source, heic_image_data):
        """Test that a HEIC photo is served as JPEG with the long-lived cache policy."""
        fake_source.add_file("heic-1", heic_image_data, "image/heic", name="IMG_0001.HEIC")

        response = client.get("/images/heic-1", params={"variant": "full"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["cache-control"] == "public, max-age=31536000, immutable"
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["content-length"] == str(len(response.content))
        with decode(response.content) as image:
            assert image.format == "JPEG"
            assert image.size == (64, 48)

    def test_png_thumbnail_with_width(self, client, fake_source, png_image_data):
        fake_source.add_file("png-1", png_image_data, "image/png", name="photo.png")

        response = client.get("/images/png-1", params={"variant": "thumbnail", "width": 100})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["cache-control"] == "public, max-age=2592000, immutable"
        with decode(response.content) as image:
            assert image.size == (100, 75)

    def test_default_is_full(self, client, fake_source, jpeg_image_data):
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")

        response = client.get("/images/jpg-1")

        assert response.status_code == 200
        assert response.headers["cache-control"] == "public, max-age=31536000, immutable"
        with decode(response.content) as image:
            assert image.size == (400, 300)

    def test_quality_parameter(self, client, fake_source):
        fake_source.add_file("png-1", create_noise_image((200, 200)), "image/png", name="photo.png")

        low = client.get("/images/png-1", params={"quality": 5})
        high = client.get("/images/png-1", params={"quality": 100})

        assert low.status_code == high.status_code == 200
        assert len(high.content) > len(low.content)

    def test_malformed_parameters_use_defaults(self, client, fake_source, png_image_data):
        """Test that non-numeric width and quality fall back instead of failing validation."""
        fake_source.add_file("png-1", png_image_data, "image/png", name="photo.png")

        response = client.get("/images/png-1", params={"quality": "high", "width": "wide"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        with decode(response.content) as image:
            assert image.size == (400, 300)

    def test_not_found(self, client):
        response = client.get("/images/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "File not accessible or does not exist", "code": "not_found_error"}

    def test_not_an_image(self, client, fake_source):
        fake_source.add_file("pdf-1", b"%PDF-1.4", "application/pdf", name="diary.pdf")

        response = client.get("/images/pdf-1")

        assert response.status_code == 400
        assert response.json() == {"error": "File is not an image", "code": "not_an_image"}
        assert fake_source.downloads == []

    def test_too_large(self, client, fake_source, jpeg_image_data):
        fake_source.add_file("big-1", jpeg_image_data, "image/jpeg", name="big.jpg", size=500 * 1024 * 1024)

        response = client.get("/images/big-1")

        assert response.status_code == 413

    def test_corrupt_image_served_as_is(self, client, fake_source):
        """Test that undecodable standard images are passed through untouched."""
        fake_source.add_file("bad-1", b"\x89PNG\r\n\x1a\nbroken", "image/png", name="bad.png")

        response = client.get("/images/bad-1", params={"width": 50})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == b"\x89PNG\r\n\x1a\nbroken"

    def test_conversion_failure(self, client, fake_source):
        fake_source.add_file("heic-bad", b"not really heic", "image/heic", name="broken.heic")

        response = client.get("/images/heic-bad")

        assert response.status_code == 500
        assert response.json()["code"] == "legacy_conversion_failed"

    def test_unexpected_error(self, fake_source, jpeg_image_data):
        """Test that unclassified failures become a generic 500."""
        processor = ImageProcessor(default_quality=85)
        processor.normalize = MagicMock(side_effect=RuntimeError("unexpected"))
        app = create_app(source=fake_source, processor=processor)
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/images/jpg-1")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "code": "internal_error"}

    def test_client_disconnect_stops_pipeline(self, fake_source, jpeg_image_data):
        """Test that work stops once the client has gone away."""
        processor = ImageProcessor(default_quality=85)
        processor.normalize = MagicMock()
        app = create_app(source=fake_source, processor=processor)
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")

        with patch("photodiary.api.routes.images.Request.is_disconnected", new=AsyncMock(return_value=True)):
            with TestClient(app) as client:
                response = client.get("/images/jpg-1")

        assert response.status_code == 499
        processor.normalize.assert_not_called()

    def test_requests_are_monitored(self, client, fake_source, jpeg_image_data):
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")
        client.app.state.pipeline.monitor.clear()

        client.get("/images/jpg-1", params={"variant": "thumbnail"})
        client.get("/images/jpg-1")

        performance = client.get("/health").json()["performance"]
        assert performance["thumbnail"]["count"] == 1
        assert performance["full-image"]["count"] == 1


class TestLegacyRoute:
    """Test cases for the Drive-style alias route."""

    def test_size_parameter(self, client, fake_source, png_image_data):
        fake_source.add_file("png-1", png_image_data, "image/png", name="photo.png")

        response = client.get("/api/google-drive/image/png-1", params={"size": "thumbnail"})

        assert response.status_code == 200
        assert response.headers["cache-control"] == "public, max-age=2592000, immutable"
        with decode(response.content) as image:
            assert image.size == (300, 225)

    def test_provider_thumbnail(self, client, fake_source, jpeg_image_data):
        thumbnail = create_test_image("JPEG", (220, 165))
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg", thumbnail=thumbnail)

        response = client.get("/api/google-drive/image/jpg-1", params={"size": "thumbnail"})

        assert response.status_code == 200
        assert fake_source.downloads == []
        assert fake_source.thumbnail_requests == [("jpg-1", 300)]

    def test_html_thumbnail_response_falls_back(self, client, fake_source, jpeg_image_data):
        """Test that a sign-in page in place of the thumbnail is never served."""
        fake_source.add_file(
            "jpg-1",
            jpeg_image_data,
            "image/jpeg",
            name="photo.jpg",
            thumbnail=b"<!DOCTYPE html><html><body>Sign in</body></html>",
            thumbnail_type="text/html; charset=utf-8",
        )

        response = client.get("/images/jpg-1", params={"variant": "thumbnail"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert fake_source.downloads == ["jpg-1"]
        with decode(response.content) as image:
            assert image.format == "JPEG"
            assert image.size == (300, 225)


class TestMetadataEndpoint:
    """Test cases for GET /images/{id}/metadata."""

    def test_metadata(self, client, fake_source, jpeg_image_data):
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")

        response = client.get("/images/jpg-1/metadata")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["file"]["name"] == "photo.jpg"
        assert data["file"]["mimeType"] == "image/jpeg"
        assert data["permissions"][0]["type"] == "anyone"
        assert data["thumbnailUrl"] == "/images/jpg-1?variant=thumbnail"
        assert data["fullUrl"] == "/images/jpg-1"
        assert data["directUrl"].endswith("id=jpg-1&export=view")

    def test_metadata_not_found(self, client):
        assert client.get("/images/missing/metadata").status_code == 404

    def test_unexpected_error_message_is_neutral(self, fake_source, jpeg_image_data):
        """Test that non-image routes do not report an image fetch failure."""
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")
        fake_source.list_permissions = MagicMock(side_effect=RuntimeError("permissions exploded"))

        with TestClient(create_app(source=fake_source), raise_server_exceptions=False) as client:
            response = client.get("/images/jpg-1/metadata")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "code": "internal_error"}


class TestSessionGate:
    """Test cases for session checks outside development."""

    @pytest.fixture
    def secured_client(self, fake_source):
        app = create_app(
            source=fake_source,
            processor=ImageProcessor(default_quality=85),
            auth_service=SessionAuthService(secret=SECRET, development_mode=False),
        )
        with TestClient(app) as test_client:
            yield test_client

    def test_missing_session(self, secured_client, fake_source, jpeg_image_data):
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")

        response = secured_client.get("/images/jpg-1")

        assert response.status_code == 401
        assert response.json()["code"] == "session_missing"
        assert fake_source.downloads == []

    def test_invalid_session(self, secured_client, fake_source, jpeg_image_data):
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")
        secured_client.cookies.set("session", jwt.encode({"userId": "u1"}, "wrong-secret", algorithm="HS256"))

        response = secured_client.get("/images/jpg-1")

        assert response.status_code == 401
        assert response.json()["code"] == "session_invalid"

    def test_valid_session(self, secured_client, fake_source, jpeg_image_data):
        fake_source.add_file("jpg-1", jpeg_image_data, "image/jpeg", name="photo.jpg")
        token = jwt.encode({"userId": "u1", "email": "writer@example.com"}, SECRET, algorithm="HS256")
        secured_client.cookies.set("session", token)

        response = secured_client.get("/images/jpg-1")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"

    def test_health_is_public(self, secured_client):
        assert secured_client.get("/health/live").status_code == 200


class TestHealthEndpoints:
    """Test cases for the health routes."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["application"]["name"] == "photodiary"
        assert "features" in data["application"]

    def test_default_processor_is_shared(self, fake_source):
        app = create_app(source=fake_source)

        assert app.state.pipeline.processor is get_image_processor()

    def test_health_unhealthy_source(self, fake_source):
        fake_source.check_connection = MagicMock(return_value=False)
        with TestClient(create_app(source=fake_source)) as client:
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["unhealthy_services"] == ["source"]

    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readiness(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
