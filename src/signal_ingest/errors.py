"""Exceptions raised by the ingestion service."""


class IngestError(Exception):
    """Base exception for ingestion errors."""
    pass


class ConfigurationError(IngestError):
    """Raised when required credentials or settings are missing."""
    pass


class UpstreamError(IngestError):
    """Raised when the upstream message source fails."""
    pass


class UpstreamConflict(UpstreamError):
    """Raised when another poller holds the upstream update stream (HTTP 409)."""
    pass


class UpstreamRateLimited(UpstreamError):
    """Raised when the upstream throttles requests (HTTP 429)."""

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class StoreError(IngestError):
    """Raised when a signal or settings store operation fails."""
    pass
