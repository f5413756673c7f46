"""HTTP boundary of the Tagboard service."""
