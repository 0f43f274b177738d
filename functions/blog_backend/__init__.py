"""
Backend package for the blog API.

This package provides a FastAPI application over a prefix-scanned key-value
store, with identity and image storage delegated to external providers.
"""
