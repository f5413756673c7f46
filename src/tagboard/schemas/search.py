"""Search result schemas."""

from pydantic import BaseModel

from .post import PostResponse


class SearchResponse(BaseModel):
    """One page of search results."""

    posts: list[PostResponse]
    next_cursor: str | None = None
