"""Typed read/query repositories over versioned, aliased Elasticsearch indices."""

__version__ = "0.1.0"
