"""fieldsync configuration module.

Provides centralized configuration management using pydantic-settings.

Usage:
    from fieldsync.config import get_settings

    settings = get_settings()
    config = settings.to_sync_config()
    print(config.mode.required_keys)
"""

from functools import lru_cache

from fieldsync.config.settings import PROJECT_VARIABLES, Settings, SyncConfig, SyncMode

__all__ = ["PROJECT_VARIABLES", "Settings", "SyncConfig", "SyncMode", "get_settings"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    To reload settings, call get_settings.cache_clear() first.

    Returns:
        Settings instance loaded from environment variables.
    """
    return Settings()
