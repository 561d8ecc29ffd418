"""
Custom exception hierarchy for the feed inference toolkit.

Inference components (schema mapper, relationship analyzer, report builder)
never raise for decodable JSON; these exceptions belong to the I/O edges:
fetching, decoding, storing and configuring.
"""

from __future__ import annotations

from typing import Optional


class FeedInferenceError(Exception):
    """Base exception for all feed inference errors."""

    pass


class ConfigurationError(FeedInferenceError):
    """Raised when configuration is invalid or missing."""

    pass


class FeedFetchError(FeedInferenceError):
    """Raised when a feed URL cannot be fetched after all retry attempts."""

    def __init__(
        self,
        message: str,
        url: str = "",
        status_code: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.attempts = attempts


class FeedDecodeError(FeedInferenceError):
    """Raised when a response body is not valid JSON."""

    pass


class StorageError(FeedInferenceError):
    """Raised for raw payload and artifact storage errors."""

    pass


class ValidationError(FeedInferenceError):
    """Raised when input validation fails."""

    pass
