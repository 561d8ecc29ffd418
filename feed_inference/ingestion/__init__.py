"""Feed ingestion: the HTTP client and endpoint discovery."""

from __future__ import annotations

from .feed_client import FeedClient, FetchResult, human_size, label_from_url
from .discovery import (
    DiscoveryOptions,
    FeedDiscoveryService,
    count_root_items,
    detect_pagination,
)

__all__ = [
    "FeedClient",
    "FetchResult",
    "human_size",
    "label_from_url",
    "DiscoveryOptions",
    "FeedDiscoveryService",
    "count_root_items",
    "detect_pagination",
]
