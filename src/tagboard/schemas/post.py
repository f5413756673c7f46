"""Post-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tagboard.models import ImageExtension, Rating
from tagboard.models.enums import DEFAULT_RATING
from tagboard.services.post_store import FileDescriptor


class FileDescriptorIn(BaseModel):
    """Image metadata produced by the upload handler."""

    filename: str = Field(..., min_length=1, description="Original file name")
    path: str = Field(..., min_length=1, description="Storage sub-folder")
    ext: ImageExtension
    size: int = Field(..., ge=0, description="File size in bytes")
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)

    def to_descriptor(self) -> FileDescriptor:
        return FileDescriptor(**self.model_dump())


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    tags: list[str] = Field(..., min_length=1, description="Free-form tag names")
    rating: Rating = DEFAULT_RATING
    description: str | None = Field(None, max_length=5000)
    source: str | None = Field(None, max_length=2000)
    file: FileDescriptorIn


class PostEdit(BaseModel):
    """Partial update of a post; omitted fields are left unchanged.

    Every edit names the version it was made against.
    """

    tags: list[str] | None = None
    rating: Rating | None = None
    description: str | None = Field(None, max_length=5000)
    source: str | None = Field(None, max_length=2000)
    expected_version: int = Field(
        ...,
        description="Version the edit was based on; a mismatch is rejected with 409.",
    )


class ScoreBump(BaseModel):
    """A single up or down vote."""

    delta: int = Field(..., ge=-1, le=1)


class PostResponse(BaseModel):
    """Schema for post information returned by the API."""

    id: int
    poster: int
    tags: list[str]
    create_date: datetime
    modified_date: datetime
    rating: Rating
    score: int
    views: int
    is_deleted: bool
    filename: str
    path: str
    ext: ImageExtension
    size: int
    width: int
    height: int
    description: str
    source: str | None
    version: int

    model_config = ConfigDict(from_attributes=True)
