"""Configuration package for the catalog collector."""

from .settings import (
    CURSOR_BLOB_NAME,
    JobSettings,
    LoggingSettings,
    SupabaseSettings,
    get_settings
)

from .loader import (
    ConfigLoader,
    ConfigurationError,
    normalize_key
)

__all__ = [
    "CURSOR_BLOB_NAME",
    "JobSettings",
    "LoggingSettings",
    "SupabaseSettings",
    "get_settings",

    "ConfigLoader",
    "ConfigurationError",
    "normalize_key"
]
