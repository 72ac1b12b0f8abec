from __future__ import annotations
"""Exception types raised by the blob browser."""


class BlobBrowserError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BlobBrowserError):
    """Raised when the connection configuration is missing or malformed."""


class CredentialError(BlobBrowserError):
    """Raised when the account key cannot be decoded."""


class NotFoundError(BlobBrowserError):
    """Raised when the remote store answers 404 for a blob or container."""

    def __init__(self, message: str, *, raw_body: str | None = None):
        super().__init__(message)
        self.status_code = 404
        self.raw_body = raw_body


class StorageError(BlobBrowserError):
    """Raised for any non-2xx answer other than 404.

    ``raw_body`` keeps the service response for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        raw_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.raw_body = raw_body

    @property
    def is_transient(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class AuthenticationError(StorageError):
    """Raised when the service rejects the request signature (401/403)."""

    @property
    def is_transient(self) -> bool:
        return False


class TransientNetworkError(StorageError):
    """Raised when the request never produced an HTTP response."""
