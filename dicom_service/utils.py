import io
import re
from typing import Optional

import numpy as np
from PIL import Image
from pydicom.dataelem import DataElement
from pydicom.multival import MultiValue
from pydicom.sequence import Sequence

from dicom_service.errors import ClientInputError, ImageConversionError, PngEncodeError
from dicom_service.models import TagAddress

_HEX_HALF = re.compile(r"[0-9A-Fa-f]{4}")

# NAME_MAX on common filesystems
MAX_KEY_BYTES = 255


def parse_tag_address(tag_string: Optional[str]) -> TagAddress:
    """Parses an 8-hex-digit tag such as '00100010' into a TagAddress."""
    if not tag_string:
        raise ClientInputError("need 'tag' query param")

    if len(tag_string) != 8:
        raise ClientInputError("tag must be 8 hex chars (e.g. 00100010)")

    group_str, element_str = tag_string[:4], tag_string[4:]

    # int(..., 16) alone would also accept '0x', '+' and '_' forms
    if not (_HEX_HALF.fullmatch(group_str) and _HEX_HALF.fullmatch(element_str)):
        raise ClientInputError(
            f"Invalid hex values in tag: '{group_str}', '{element_str}'."
        )

    return TagAddress(group=int(group_str, 16), element=int(element_str, 16))


def validate_storage_key(file_key: Optional[str]) -> str:
    """Rejects keys that could not have been produced by an upload."""
    if not file_key:
        raise ClientInputError("need 'file' query param")

    if "/" in file_key or "\\" in file_key or "\x00" in file_key:
        raise ClientInputError("file must be a storage key, not a path")

    if file_key.startswith("."):
        raise ClientInputError(f"'{file_key}' is not a valid storage key")

    if len(file_key.encode("utf-8", "replace")) > MAX_KEY_BYTES:
        raise ClientInputError(f"file must be at most {MAX_KEY_BYTES} bytes long")

    return file_key


def render_element_value(elem: DataElement) -> str:
    value = elem.value

    if value is None:
        return ""

    if isinstance(value, Sequence):
        return f"<sequence of {len(value)} items>"

    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"

    if isinstance(value, (MultiValue, list, tuple)):
        return "\\".join(str(x) for x in value)

    return str(value)


def frame_to_image(frame: np.ndarray, photometric: str = "MONOCHROME2") -> Image.Image:
    """
    Converts one decoded frame to a PIL image using min/max normalization.

    Monochrome frames become 8-bit grayscale ('L'), three-sample frames
    become 'RGB'. Any other layout raises ImageConversionError.
    """
    if frame.ndim == 2:
        mode = "L"
    elif frame.ndim == 3 and frame.shape[-1] == 3:
        mode = "RGB"
    else:
        raise ImageConversionError(
            f"Unsupported sample layout for image conversion: shape {frame.shape}"
        )

    try:
        if mode == "RGB" and frame.dtype == np.uint8:
            png_image = np.ascontiguousarray(frame)
        else:
            pixels = frame.astype(np.float64)

            # nanmin/nanmax so float pixel data with NaNs still renders
            min_val = np.nanmin(pixels)
            max_val = np.nanmax(pixels)

            if np.isfinite(min_val) and np.isfinite(max_val) and max_val > min_val:
                normalized_image = ((pixels - min_val) / (max_val - min_val)) * 255.0
            else:
                normalized_image = np.zeros_like(pixels)

            if mode == "L" and photometric == "MONOCHROME1":
                normalized_image = 255.0 - normalized_image

            normalized_image = np.nan_to_num(normalized_image, nan=0.0)
            png_image = np.clip(normalized_image, 0, 255).astype(np.uint8)

        return Image.fromarray(png_image)

    except (TypeError, ValueError) as e:
        raise ImageConversionError(f"Error converting frame to image: {str(e)}") from e


def encode_png(image: Image.Image) -> bytes:
    byte_io = io.BytesIO()
    try:
        image.save(byte_io, format="PNG", optimize=True)
    except (OSError, ValueError) as e:
        raise PngEncodeError(f"Error encoding PNG: {str(e)}") from e

    return byte_io.getvalue()
