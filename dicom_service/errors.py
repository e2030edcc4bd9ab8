"""DICOM service exception hierarchy.

Every failure is raised as one of these types at the point it is detected.
The HTTP layer maps each type to its status code without reclassifying it,
so a client can always tell a missing tag from a file that failed to parse.
"""

from __future__ import annotations


class DicomServiceError(Exception):
    """Base exception for all service failures."""

    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(DicomServiceError):
    """Raised for missing or malformed request parameters."""

    status_code = 400
    kind = "client_input"


class NotFoundError(DicomServiceError):
    """Raised when a well-formed request references something absent."""

    status_code = 404
    kind = "not_found"


class BlobNotFoundError(NotFoundError):
    kind = "blob_not_found"


class TagNotFoundError(NotFoundError):
    kind = "tag_not_found"


class PixelDataNotFoundError(NotFoundError):
    kind = "no_pixel_data"


class NoFramesError(NotFoundError):
    kind = "no_frames"


class StorageIOError(DicomServiceError):
    """Raised when the blob store cannot be written or read."""

    kind = "storage_io"


class DecodeError(DicomServiceError):
    """Raised when the dataset or its pixel data cannot be decoded."""

    kind = "decode"


class ImageConversionError(DecodeError):
    """Raised when a decoded frame has no raster image equivalent."""

    kind = "image_conversion"


class PngEncodeError(DecodeError):
    kind = "png_encode"
