"""
Utility modules for the feed inference toolkit.

This package provides exceptions, constants, type aliases, path naming
helpers, keyword dictionaries and logging configuration used throughout
the application.
"""

from __future__ import annotations

from .constants import (
    DEFAULT_ARRAY_SAMPLE_SIZE,
    DEFAULT_ENUM_THRESHOLD,
    DEFAULT_EXAMPLE_MAX_LENGTH,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_REQUEST_TIMEOUT,
)
from .exceptions import (
    ConfigurationError,
    FeedDecodeError,
    FeedFetchError,
    FeedInferenceError,
    StorageError,
    ValidationError,
)
from .logging_config import RunIDFilter, reset_run_id, set_run_id, setup_logging
from .types import JSON, EntityPath, FieldPath, JSONValue, ValueHistogram

__all__ = [
    # Constants
    "DEFAULT_ARRAY_SAMPLE_SIZE",
    "DEFAULT_ENUM_THRESHOLD",
    "DEFAULT_EXAMPLE_MAX_LENGTH",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_MAX_PAGES",
    "DEFAULT_REQUEST_TIMEOUT",
    # Exceptions
    "ConfigurationError",
    "FeedDecodeError",
    "FeedFetchError",
    "FeedInferenceError",
    "StorageError",
    "ValidationError",
    # Logging
    "RunIDFilter",
    "reset_run_id",
    "set_run_id",
    "setup_logging",
    # Types
    "JSON",
    "EntityPath",
    "FieldPath",
    "ValueHistogram",
    "JSONValue",
]
