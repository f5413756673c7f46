"""Tag-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field


class TagResponse(BaseModel):
    """Tag catalog entry."""

    id: int
    name: str
    count: int
    type: int

    model_config = ConfigDict(from_attributes=True)


class TagTypeUpdate(BaseModel):
    type: int = Field(..., ge=0, le=32767)


class CountMismatchResponse(BaseModel):
    """Tag whose stored count disagreed with live membership."""

    tag_id: int
    name: str
    stored: int
    actual: int

    model_config = ConfigDict(from_attributes=True)
