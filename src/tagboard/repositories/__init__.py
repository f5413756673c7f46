"""Data access helpers."""

from .post_repo import PostRepository

__all__ = ["PostRepository"]
