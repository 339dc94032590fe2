"""Configuration management for the photodiary image proxy.

Values come from environment variables, with a ``.env`` file in the working
directory loaded once as a fallback source. Designed for a single small
deployment, so there is no layered settings hierarchy.
"""

import os
from typing import Any

from dotenv import load_dotenv

from .logging_config import DEVELOPMENT_ENVIRONMENTS, get_logger

logger = get_logger(__name__)

# Image pipeline defaults
DEFAULT_IMAGE_QUALITY = 85
DEFAULT_THUMBNAIL_MAX_WIDTH = 300
DEFAULT_THUMBNAIL_CACHE_MAX_AGE = 30 * 24 * 60 * 60  # 30 days
DEFAULT_FULL_CACHE_MAX_AGE = 365 * 24 * 60 * 60  # 1 year
DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
DEFAULT_UPSTREAM_TIMEOUT = 30.0


class Config:
    """Centralized configuration backed by environment variables."""

    def __init__(self, env_file: str | None = None):
        """Initialize configuration.

        Args:
            env_file: Optional path to a dotenv file. Existing environment
                variables always take precedence over values in the file.
        """
        self._cache: dict[str, Any] = {}
        load_dotenv(dotenv_path=env_file, override=False)

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get a configuration value.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)
        if value is None or value == "":
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")
                    else:
                        value = bool(value)
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def is_development(self) -> bool:
        """Check if running in a development-like environment."""
        return str(self.get("ENVIRONMENT", "development")).lower() in DEVELOPMENT_ENVIRONMENTS

    def is_production(self) -> bool:
        """Check if running in production."""
        return str(self.get("ENVIRONMENT", "development")).lower() in ("production", "prod")

    def clear_cache(self) -> None:
        """Clear the value cache so the next lookups re-read the environment."""
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get a configuration value from the global configuration."""
    return get_config().get(key, default, cast_type)


def is_development() -> bool:
    return get_config().is_development()


def is_production() -> bool:
    return get_config().is_production()


def get_environment() -> str:
    return str(get_env("ENVIRONMENT", "development"))


# Google Drive service account


def get_google_client_email() -> str | None:
    return get_env("GOOGLE_CLIENT_EMAIL")


def get_google_private_key() -> str | None:
    """Get the service account private key.

    Keys pasted into environment variables usually carry literal ``\\n``
    sequences instead of newlines; PEM parsing needs the real ones.
    """
    key = get_env("GOOGLE_PRIVATE_KEY")
    if key is None:
        return None
    return str(key).replace("\\n", "\n")


def get_google_project_id() -> str | None:
    return get_env("GOOGLE_PROJECT_ID")


# Session gate


def get_session_secret() -> str | None:
    return get_env("SESSION_SECRET")


def is_session_check_bypassed() -> bool:
    """Sessions are skipped only when ENVIRONMENT explicitly names a development environment."""
    environment = get_env("ENVIRONMENT")
    return environment is not None and str(environment).lower() in DEVELOPMENT_ENVIRONMENTS


# Image pipeline


def get_default_quality() -> int:
    return int(get_env("DEFAULT_IMAGE_QUALITY", DEFAULT_IMAGE_QUALITY, int))


def get_thumbnail_max_width() -> int:
    return int(get_env("THUMBNAIL_MAX_WIDTH", DEFAULT_THUMBNAIL_MAX_WIDTH, int))


def get_thumbnail_cache_max_age() -> int:
    return int(get_env("THUMBNAIL_CACHE_MAX_AGE", DEFAULT_THUMBNAIL_CACHE_MAX_AGE, int))


def get_full_cache_max_age() -> int:
    return int(get_env("FULL_CACHE_MAX_AGE", DEFAULT_FULL_CACHE_MAX_AGE, int))


def get_max_file_size() -> int:
    return int(get_env("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE, int))


def get_upstream_timeout() -> float:
    return float(get_env("UPSTREAM_TIMEOUT", DEFAULT_UPSTREAM_TIMEOUT, float))
