"""Core configuration and error types for Tagboard."""
