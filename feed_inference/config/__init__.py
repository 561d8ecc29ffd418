"""Configuration for the feed inference toolkit."""

from __future__ import annotations

from .settings import (
    AuthSettings,
    DiscoverySettings,
    HttpSettings,
    SchemaSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "AuthSettings",
    "DiscoverySettings",
    "HttpSettings",
    "SchemaSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
