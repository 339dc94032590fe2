"""
photodiary - Image proxy backend for a personal photo diary

Serves photos stored in Google Drive to the diary frontend:
- Authenticated fetch through the Drive API
- HEIC/HEIF conversion to standard raster formats
- Width-bounded resizing and JPEG recompression
- Long-lived cache headers for thumbnails and full images
"""

__version__ = "0.1.0"
__author__ = "photodiary"
__description__ = "Image proxy backend for a personal photo diary"
