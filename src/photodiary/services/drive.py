"""Google Drive access for the image proxy.

Talks to the Drive v3 REST API through a google-auth authorized session.
The service is built once at startup and shared by all requests; it keeps
no per-request state.
"""

import re
from datetime import datetime
from typing import Any
from urllib.parse import quote

import google.auth
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from ..config import (
    get_google_client_email,
    get_google_private_key,
    get_google_project_id,
    get_upstream_timeout,
)
from ..error_handling import AssetTooLargeError, NotFoundError, PhotoDiaryError, UpstreamError
from ..logging_config import get_logger, log_performance
from ..models.image import SourceMetadata

logger = get_logger(__name__)

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
METADATA_FIELDS = "id, name, mimeType, size, thumbnailLink"
DOWNLOAD_CHUNK_SIZE = 64 * 1024

# Drive answers 403 both for missing permissions and for files hidden from the account
NOT_FOUND_STATUSES = {403, 404}

THUMBNAIL_SIZE_PATTERN = re.compile(r"=s\d+$")


def build_credentials() -> Any:
    """
    Build Drive credentials from configuration.

    A service account given through GOOGLE_CLIENT_EMAIL and GOOGLE_PRIVATE_KEY
    is preferred; otherwise application default credentials are used.

    Returns:
        google.auth.credentials.Credentials: Scoped credentials

    Raises:
        UpstreamError: If no usable credentials can be found
    """
    client_email = get_google_client_email()
    private_key = get_google_private_key()

    try:
        if client_email and private_key:
            info = {
                "type": "service_account",
                "client_email": client_email,
                "private_key": private_key,
                "token_uri": TOKEN_URI,
                "project_id": get_google_project_id(),
            }
            credentials = service_account.Credentials.from_service_account_info(info, scopes=DRIVE_SCOPES)
            logger.info("drive_credentials_loaded", source="service_account", client_email=client_email)
            return credentials

        credentials, project_id = google.auth.default(scopes=DRIVE_SCOPES)
        logger.info("drive_credentials_loaded", source="application_default", project_id=project_id)
        return credentials
    except (GoogleAuthError, ValueError) as e:
        raise UpstreamError(
            f"Failed to load Google Drive credentials: {e}",
            code="drive_credentials_unavailable",
            original_exception=e,
        ) from e


class DriveService:
    """Read-only Google Drive client keyed by file id."""

    def __init__(self, session: requests.Session, timeout: float | None = None) -> None:
        """
        Initialize the Drive service.

        Args:
            session: Authorized HTTP session (AuthorizedSession in production)
            timeout: Per-request timeout in seconds (defaults to UPSTREAM_TIMEOUT)
        """
        self.session = session
        self.timeout = timeout if timeout is not None else get_upstream_timeout()

    @classmethod
    def from_config(cls) -> "DriveService":
        """Create a service with credentials resolved from configuration."""
        service = cls(AuthorizedSession(build_credentials()))
        logger.info("drive_service_initialized", timeout=service.timeout)
        return service

    def _file_url(self, identifier: str) -> str:
        return f"{DRIVE_FILES_URL}/{quote(identifier, safe='')}"

    def _raise_for_status(self, response: requests.Response, identifier: str, operation: str) -> None:
        if response.status_code < 400:
            return

        details = {"file_id": identifier, "operation": operation, "upstream_status": response.status_code}
        if response.status_code in NOT_FOUND_STATUSES:
            raise NotFoundError(f"Drive file {identifier} not found or not accessible", details=details)
        raise UpstreamError(
            f"Drive returned HTTP {response.status_code} for {operation} of {identifier}",
            code="upstream_http_error",
            details=details,
        )

    def _wrap_transport_error(self, e: Exception, identifier: str, operation: str) -> UpstreamError:
        code = "upstream_timeout" if isinstance(e, requests.Timeout) else "upstream_unreachable"
        return UpstreamError(
            f"Drive request failed during {operation} of {identifier}: {e}",
            code=code,
            details={"file_id": identifier, "operation": operation},
            original_exception=e,
        )

    def get_metadata(self, identifier: str) -> SourceMetadata:
        """
        Look up file metadata.

        Args:
            identifier: Drive file id

        Returns:
            SourceMetadata: Name, MIME type, size and thumbnail link

        Raises:
            NotFoundError: If the file does not exist or is not shared with us
            UpstreamError: If Drive cannot be reached or fails
        """
        start_time = datetime.now()
        try:
            response = self.session.get(
                self._file_url(identifier),
                params={"fields": METADATA_FIELDS, "supportsAllDrives": "true"},
                timeout=self.timeout,
            )
            self._raise_for_status(response, identifier, "metadata")
            payload = response.json()
        except PhotoDiaryError:
            raise
        except (requests.RequestException, GoogleAuthError) as e:
            raise self._wrap_transport_error(e, identifier, "metadata") from e
        except ValueError as e:
            raise UpstreamError(
                f"Drive returned malformed metadata for {identifier}: {e}",
                code="upstream_malformed_response",
                details={"file_id": identifier},
                original_exception=e,
            ) from e

        size = payload.get("size")
        metadata = SourceMetadata(
            identifier=payload.get("id", identifier),
            name=payload.get("name"),
            mime_type=payload.get("mimeType"),
            size=int(size) if size is not None else None,
            thumbnail_link=payload.get("thumbnailLink"),
        )

        log_performance(
            "drive_get_metadata",
            (datetime.now() - start_time).total_seconds(),
            file_id=identifier,
            mime_type=metadata.mime_type,
            file_size=metadata.size,
        )
        return metadata

    def download(self, identifier: str, max_bytes: int | None = None) -> bytes:
        """
        Download the full file content.

        Args:
            identifier: Drive file id
            max_bytes: Abort once the body grows beyond this many bytes

        Returns:
            bytes: File content

        Raises:
            NotFoundError: If the file does not exist or is not shared with us
            AssetTooLargeError: If the body exceeds max_bytes
            UpstreamError: If Drive cannot be reached or fails
        """
        start_time = datetime.now()
        try:
            with self.session.get(
                self._file_url(identifier),
                params={"alt": "media", "supportsAllDrives": "true"},
                stream=True,
                timeout=self.timeout,
            ) as response:
                self._raise_for_status(response, identifier, "download")
                data = self._read_body(response, identifier, max_bytes)
        except PhotoDiaryError:
            raise
        except (requests.RequestException, GoogleAuthError) as e:
            raise self._wrap_transport_error(e, identifier, "download") from e

        log_performance(
            "drive_download", (datetime.now() - start_time).total_seconds(), file_id=identifier, file_size=len(data)
        )
        return data

    def download_thumbnail(self, metadata: SourceMetadata, width: int | None = None) -> tuple[bytes, str | None]:
        """
        Download the Drive-generated thumbnail of a file.

        Args:
            metadata: Metadata carrying the thumbnail link
            width: Requested longest edge in pixels

        Returns:
            tuple: Thumbnail bytes and the response content type

        Raises:
            NotFoundError: If Drive has no thumbnail for the file
            UpstreamError: If the thumbnail request fails
        """
        if not metadata.thumbnail_link:
            raise NotFoundError(
                f"Drive has no thumbnail for {metadata.identifier}",
                code="thumbnail_unavailable",
                details={"file_id": metadata.identifier},
            )

        link = metadata.thumbnail_link
        if width:
            link = THUMBNAIL_SIZE_PATTERN.sub(f"=s{width}", link)

        start_time = datetime.now()
        try:
            response = self.session.get(link, timeout=self.timeout)
            self._raise_for_status(response, metadata.identifier, "thumbnail")
        except PhotoDiaryError:
            raise
        except (requests.RequestException, GoogleAuthError) as e:
            raise self._wrap_transport_error(e, metadata.identifier, "thumbnail") from e

        log_performance(
            "drive_download_thumbnail",
            (datetime.now() - start_time).total_seconds(),
            file_id=metadata.identifier,
            file_size=len(response.content),
        )
        return response.content, response.headers.get("Content-Type")

    def list_permissions(self, identifier: str) -> list[dict]:
        """List the sharing permissions of a file (debug view)."""
        try:
            response = self.session.get(
                f"{self._file_url(identifier)}/permissions",
                params={"fields": "permissions(id, type, role, emailAddress)", "supportsAllDrives": "true"},
                timeout=self.timeout,
            )
            self._raise_for_status(response, identifier, "permissions")
            return list(response.json().get("permissions", []))
        except PhotoDiaryError:
            raise
        except (requests.RequestException, GoogleAuthError) as e:
            raise self._wrap_transport_error(e, identifier, "permissions") from e

    def check_connection(self) -> bool:
        """Return True when Drive answers a minimal listing request."""
        try:
            response = self.session.get(
                DRIVE_FILES_URL, params={"pageSize": 1, "fields": "files(id)"}, timeout=self.timeout
            )
            return response.status_code < 400
        except (requests.RequestException, GoogleAuthError) as e:
            logger.warning("drive_connection_check_failed", error=str(e))
            return False

    def _read_body(self, response: requests.Response, identifier: str, max_bytes: int | None) -> bytes:
        chunks: list[bytes] = []
        total = 0
        for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
            if not chunk:
                continue
            total += len(chunk)
            if max_bytes is not None and total > max_bytes:
                raise AssetTooLargeError(
                    f"Drive file {identifier} exceeds {max_bytes} bytes",
                    details={"file_id": identifier, "max_bytes": max_bytes},
                )
            chunks.append(chunk)
        return b"".join(chunks)
