"""
PageKit configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Database (empty = in-memory document store)
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Outbound data fetches (data URLs, filter endpoints, payment endpoints)
    FETCH_TIMEOUT_SECONDS: float = float(os.environ.get("FETCH_TIMEOUT_SECONDS", "15"))

    # View defaults
    DEFAULT_LOCALE: str = os.environ.get("DEFAULT_LOCALE", "pt-BR")
    DEFAULT_TIMEZONE: str = os.environ.get("DEFAULT_TIMEZONE", "America/Sao_Paulo")
    UI_KIT_URL: str = os.environ.get("UI_KIT_URL", "/static/nexus-ui-kit.css")

    # Server-side render fetches live data before rendering
    RENDER_FETCH_ON_SSR: bool = os.environ.get("RENDER_FETCH_ON_SSR", "true").lower() == "true"

    @property
    def use_postgres(self) -> bool:
        return bool(self.DATABASE_URL)


# Singleton instance
settings = Settings()

if settings.ENVIRONMENT == "production" and not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required in production")
