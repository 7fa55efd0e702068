"""Configuration management for the FastAPI backend."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from . import __version__


def _parse_origins() -> List[str]:
    origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    return [origin.strip() for origin in origins_str.split(",") if origin.strip()]


@dataclass
class APIConfig:
    """API configuration settings."""

    # Core API settings
    host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("API_DEBUG", "false").lower() == "true")

    # CORS settings
    cors_origins: List[str] = field(default_factory=_parse_origins)

    # Application metadata
    title: str = field(default_factory=lambda: os.getenv("API_TITLE", "Vubly API"))
    description: str = "Backend API for translating and dubbing YouTube videos"
    version: str = field(default_factory=lambda: os.getenv("APP_VERSION", __version__))

    # Environment
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    docs_enabled: bool = field(default_factory=lambda: os.getenv("API_DOCS_ENABLED", "").lower() == "true")

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def show_docs(self) -> bool:
        return self.debug or self.docs_enabled

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.port < 1 or self.port > 65535:
            errors.append("API_PORT must be between 1 and 65535")

        if not self.cors_origins:
            errors.append("CORS_ORIGINS must list at least one origin")

        return errors


@lru_cache()
def get_api_config() -> APIConfig:
    """Get API configuration."""
    config = APIConfig()

    errors = config.validate()
    if errors:
        raise ValueError(f"Configuration errors: {', '.join(errors)}")

    return config
