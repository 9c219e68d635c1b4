"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
CORS origins, the upload size limit, the fetch timeout, the directory local
files may be served from, the options passed through to the Parquet decoder,
and the default map view.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from parquet_viewer.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.fit_zoom)

    Environment variables can override defaults:
        >>> MAX_UPLOAD_SIZE_BYTES=1073741824
        >>> FETCH_TIMEOUT_SECONDS=30
        >>> DECODE_OPTIONS='{"columns": ["geometry", "name"]}'
"""

import functools
import pathlib
from typing import Any

import pydantic_settings


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.
    None of them reach the ingestion pipeline implicitly: the HTTP layer
    reads them and hands explicit values to the services.

    Attributes:
        allow_origins: List of allowed CORS origins (["*"] allows all).
        max_upload_size_bytes: Maximum file upload size (default 512MB).
        fetch_timeout_seconds: Timeout for remote fetches, None disables it.
        local_data_root: Directory the HTTP endpoints may read local files
            from. None (the default) restricts them to http(s) URLs.
        decode_options: Keyword options forwarded untouched to the decoder.
        initial_longitude: Longitude of the view used when nothing is loaded.
        initial_latitude: Latitude of the view used when nothing is loaded.
        initial_zoom: Zoom of the view used when nothing is loaded.
        fit_zoom: Zoom applied when centering on loaded features.
        log_level: Root logging level configured by the application factory.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     fetch_timeout_seconds=10.0,
            ...     decode_options={"use_threads": False},
            ... )
    """

    allow_origins: list[str] = ["*"]
    max_upload_size_bytes: int = 512 * 1024 * 1024
    fetch_timeout_seconds: float | None = None
    local_data_root: pathlib.Path | None = None
    decode_options: dict[str, Any] = {}
    initial_longitude: float = -98.5795
    initial_latitude: float = 39.8283
    initial_zoom: float = 3.0
    fit_zoom: float = 8.0
    log_level: str = "INFO"

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. Subsequent calls return the same
    cached instance.

    Returns:
        Settings instance with all configuration values populated.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    return Settings()
