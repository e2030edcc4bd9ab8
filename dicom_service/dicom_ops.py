"""
Tag lookup and first-frame rendering for stored DICOM files.

Both queries run the same ordered guard stages and stop at the first one
that fails:

    input shape -> blob exists -> dataset parses -> element exists -> decode

Each stage raises its own error type from dicom_service.errors. Nothing is
cached; every call re-reads and re-parses the stored file.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
import pydicom
from pydicom import Dataset
from pydicom.dataelem import DataElement
from pydicom.tag import BaseTag, Tag

from dicom_service.errors import (
    DecodeError,
    NoFramesError,
    PixelDataNotFoundError,
    TagNotFoundError,
)
from dicom_service.models import TagAddress
from dicom_service.storage import BlobStore
from dicom_service.utils import (
    encode_png,
    frame_to_image,
    parse_tag_address,
    render_element_value,
    validate_storage_key,
)

logger = logging.getLogger(__name__)

PIXEL_DATA_TAG = Tag(0x7FE0, 0x0010)


def load_dataset(store: BlobStore, file_key: str) -> Dataset:
    """
    Parses the stored blob for `file_key` into a pydicom Dataset.

    Raises:
        ClientInputError: If the key is malformed.
        BlobNotFoundError: If nothing is stored under the key.
        StorageIOError: If the blob exists but cannot be read.
        DecodeError: If the bytes are not a readable DICOM file.
    """
    with store.open(file_key) as fp:
        try:
            return pydicom.dcmread(fp)
        except Exception as e:  # InvalidDicomError, or EOFError on truncated files
            raise DecodeError(f"failed to parse DICOM: {str(e)}") from e


def find_element(dataset: Dataset, tag: BaseTag) -> Optional[DataElement]:
    """
    Returns the element at `tag`, falling back to the file meta group for
    0002 tags, or None when the dataset has no such element.

    Raises:
        DecodeError: If the raw element cannot be converted to a value.
    """
    try:
        element = dataset.get(tag)
        if element is None and tag.group == 0x0002:
            file_meta = getattr(dataset, "file_meta", None)
            if file_meta:
                element = file_meta.get(tag)
    except Exception as e:  # raw values are converted lazily here, with any VR parsing error
        raise DecodeError(f"failed to read element {tag}: {str(e)}") from e

    return element


def decode_frames(dataset: Dataset) -> List[np.ndarray]:
    """
    Decodes the Pixel Data of `dataset` into an ordered list of frames.

    Returns an empty list when Pixel Data is empty or Number of Frames is 0.

    Raises:
        PixelDataNotFoundError: If the dataset has no Pixel Data element.
        DecodeError: If the pixel data cannot be decoded.
    """
    pixel_element = find_element(dataset, PIXEL_DATA_TAG)
    if pixel_element is None:
        raise PixelDataNotFoundError("no PixelData found")

    if not pixel_element.value:
        return []

    number_of_frames = dataset.get("NumberOfFrames")
    try:
        number_of_frames = 1 if number_of_frames in (None, "") else int(number_of_frames)
    except (TypeError, ValueError):
        number_of_frames = 1
    if number_of_frames < 1:
        return []

    try:
        pixel_array = dataset.pixel_array
    except Exception as e:  # pixel handlers raise several unrelated types
        raise DecodeError(f"failed to decode pixel data: {str(e)}") from e

    if number_of_frames > 1:
        return list(pixel_array)

    return [pixel_array]


def resolve_tag(store: BlobStore, file_key: str, tag_string: str) -> Tuple[str, str]:
    """
    Looks up one data element in a stored file and renders its value.

    Returns:
        (tag_string, rendered_value)
    """
    validate_storage_key(file_key)
    address: TagAddress = parse_tag_address(tag_string)

    dataset = load_dataset(store, file_key)

    element = find_element(dataset, address.tag)
    if element is None:
        raise TagNotFoundError(f"tag {tag_string} not found")

    return tag_string, render_element_value(element)


def extract_first_frame_png(store: BlobStore, file_key: str) -> bytes:
    """
    Renders the first image frame of a stored file as PNG bytes.

    Frames after index 0 are never converted.
    """
    validate_storage_key(file_key)

    dataset = load_dataset(store, file_key)

    frames = decode_frames(dataset)
    if not frames:
        raise NoFramesError("no image frames present")

    logger.debug("%s decoded to %d frame(s), rendering frame 0", file_key, len(frames))

    photometric = str(dataset.get("PhotometricInterpretation", "MONOCHROME2"))
    image = frame_to_image(frames[0], photometric)

    return encode_png(image)
