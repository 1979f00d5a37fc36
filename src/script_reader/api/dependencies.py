"""
FastAPI Dependency Injection Providers.

Architecture:
    1. get_settings() - Loads and caches application configuration
    2. get_reader() - Creates/returns the singleton ScriptReader

    Both are singletons so every request shares one history, one active
    result and one backend client.

Usage in Route Handlers:
    from fastapi import Depends
    from script_reader.api.dependencies import get_reader

    @router.get("/v1/history")
    def history(reader: ScriptReader = Depends(get_reader)):
        return reader.history()

Settings Path:
    SCRIPT_READER_SETTINGS, else config/settings.yaml. A missing file
    means built-in defaults.
"""
from __future__ import annotations

from functools import lru_cache

from script_reader.core.config import Settings, load_settings_or_defaults
from script_reader.services.reader_service import ScriptReader, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache application settings."""
    return load_settings_or_defaults()


def get_reader() -> ScriptReader:
    """Get the singleton ScriptReader instance."""
    return get_service(get_settings())
