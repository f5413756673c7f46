# src/tagboard/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import posts_router, search_router, tags_router

__all__ = [
    "posts_router",
    "search_router",
    "tags_router",
]
