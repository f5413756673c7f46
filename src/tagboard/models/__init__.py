# src/tagboard/models/__init__.py
"""SQLAlchemy models for the Tagboard application."""

from .enums import ImageExtension, Perms, PostSorting, Rating
from .post import Post
from .tag import PostTag, Tag
from .user import User

__all__ = [
    "ImageExtension", "Perms", "PostSorting", "Rating",
    "Post",
    "PostTag", "Tag",
    "User",
]
