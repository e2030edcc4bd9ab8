"""
Data models for the DICOM intake service.

This module defines Pydantic models for the values that cross the HTTP
boundary and for the tag addresses used to query stored datasets.
"""

# Third-party imports
from pydantic import BaseModel, Field
from pydicom.tag import BaseTag, Tag


class UploadResponse(BaseModel):
    """
    Response model for a successful DICOM file upload.

    Attributes:
        file (str): The storage key to pass back as `file` in later queries.
    """

    file: str = Field(
        ..., description="Storage key of the uploaded file, '<timestamp>_<filename>'"
    )


class ErrorResponse(BaseModel):
    """
    Body returned for every failed request.

    Attributes:
        detail (str): Human readable description of the failure.
        error (str): Machine readable failure kind (e.g. 'tag_not_found').
    """

    detail: str = Field(..., description="Description of the failure")
    error: str = Field(..., description="Failure kind")


class TagAddress(BaseModel):
    """
    A (group, element) pair addressing one DICOM data element.

    Attributes:
        group (int): Group number, 0x0000-0xFFFF.
        element (int): Element number, 0x0000-0xFFFF.
    """

    group: int = Field(..., ge=0, le=0xFFFF)
    element: int = Field(..., ge=0, le=0xFFFF)

    @property
    def tag(self) -> BaseTag:
        return Tag(self.group, self.element)

    def __str__(self) -> str:
        return f"{self.group:04X}{self.element:04X}"
