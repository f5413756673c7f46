"""Tagboard: tag-indexed image board content store."""

__version__ = "0.1.0"
