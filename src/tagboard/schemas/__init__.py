# src/tagboard/schemas/__init__.py
"""Pydantic schemas for API request/response validation."""

from .post import FileDescriptorIn, PostCreate, PostEdit, PostResponse, ScoreBump
from .search import SearchResponse
from .tag import CountMismatchResponse, TagResponse, TagTypeUpdate

__all__ = [
    "FileDescriptorIn",
    "PostCreate",
    "PostEdit",
    "PostResponse",
    "ScoreBump",
    "SearchResponse",
    "CountMismatchResponse",
    "TagResponse",
    "TagTypeUpdate",
]
