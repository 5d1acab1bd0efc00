"""File type enumeration."""
from enum import Enum


class FileTypeEnum(str, Enum):
    """Invoice file types accepted for upload."""

    PDF = "pdf"

    # Scans and photos
    IMAGE_PNG = "png"
    IMAGE_JPG = "jpg"
    IMAGE_JPEG = "jpeg"
    IMAGE_TIFF = "tiff"
    IMAGE_WEBP = "webp"

    @classmethod
    def from_filename(cls, filename: str):
        """Return the enum member for a filename's extension, or None."""
        if not filename or "." not in filename:
            return None
        ext = filename.rsplit(".", 1)[-1].lower()
        try:
            return cls(ext)
        except ValueError:
            return None
