"""
Error taxonomy for the blog API.

Each error carries a machine-readable kind and the HTTP status it maps to;
the app's exception handlers turn them into `{"error": ..., "kind": ...}`.
"""

from __future__ import annotations


class BlogError(Exception):
    kind: str = "InternalError"
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(BlogError):
    kind = "ValidationError"
    status_code = 400


class AuthenticationError(BlogError):
    kind = "AuthenticationError"
    status_code = 401


class AuthorizationError(BlogError):
    kind = "AuthorizationError"
    status_code = 403


class NotFoundError(BlogError):
    kind = "NotFoundError"
    status_code = 404


class AuthProviderError(BlogError):
    """The identity provider rejected the request (e.g. duplicate email)."""

    kind = "AuthProviderError"
    status_code = 400


class StorageError(BlogError):
    """The key-value store or object storage failed."""

    kind = "StorageError"
    status_code = 500


class InternalError(BlogError):
    kind = "InternalError"
    status_code = 500
