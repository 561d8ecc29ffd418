"""
Storage module for feed payloads.

Keeps raw downloads with metadata sidecars and the JSON analysis artifacts
on the local filesystem.
"""

from .feed_storage import FeedFileStorage, url_hash

__all__ = [
    "FeedFileStorage",
    "url_hash",
]
