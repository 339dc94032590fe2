"""
Services module for the photodiary image proxy.

- DriveService: Google Drive API access
- SourceFetcher: type-checked fetch with thumbnail fallback
- ImageProcessor: HEIC/HEIF normalization and JPEG transforms
- ImagePipeline: the four request stages
- SessionAuthService: session cookie verification
"""

from .auth import SessionAuthService, SessionUser
from .drive import DriveService
from .fetcher import SourceFetcher
from .image_processor import ImageProcessor, get_image_processor
from .pipeline import ImagePipeline, ImageResponse

__all__ = [
    "DriveService",
    "ImagePipeline",
    "ImageProcessor",
    "ImageResponse",
    "SessionAuthService",
    "SessionUser",
    "SourceFetcher",
    "get_image_processor",
]
