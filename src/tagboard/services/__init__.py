# src/tagboard/services/__init__.py
"""Business logic services for the Tagboard application."""

from .post_store import FileDescriptor, PostStore
from .search import SearchEngine, TagQuery, parse_query
from .tag_catalog import TagCatalog
from .unit_of_work import run_in_transaction

__all__ = [
    "FileDescriptor",
    "PostStore",
    "SearchEngine",
    "TagCatalog",
    "TagQuery",
    "parse_query",
    "run_in_transaction",
]
