"""Configuration module for muzak."""

from .settings import (
    ApiSettings,
    DatabaseSettings,
    IngestionSettings,
    ObservabilitySettings,
    RemoteSettings,
    ReplicationSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "ApiSettings",
    "DatabaseSettings",
    "IngestionSettings",
    "ObservabilitySettings",
    "RemoteSettings",
    "ReplicationSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
