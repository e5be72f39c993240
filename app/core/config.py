"""
core/config.py
----------------

Application configuration module.

Defines strongly‑typed settings loaded from the environment using
``pydantic-settings``. These settings control timeouts, retry counts,
pagination guards, the addresses of the catalog store and of the
document ingestion webhook, and the lifetime of dispatch leases.
Values provided here are sensible defaults but can be overridden via
environment variables at deployment time.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The settings structure is flat and uses environment variables
    prefixed with ``APP_``.  For example, to point the service at a
    different catalog you can set ``APP_CATALOG_URL=https://...``.
    """

    # HTTP client settings
    http_timeout: float = Field(10.0, description="Hard timeout for HTTP requests in seconds.")
    http_max_retries: int = Field(3, ge=0, description="Maximum number of retries for idempotent operations (GET).")
    http_backoff_factor: float = Field(0.5, description="Backoff factor for exponential retry delays.")

    # Pagination guards
    max_pages: int = Field(50, ge=1, description="Maximum number of pages to request when paginating.")
    max_items: int = Field(50000, ge=1, description="Maximum number of items to retrieve during pagination.")
    catalog_page_size: int = Field(1000, ge=1, description="Rows requested per page from the catalog store.")
    page_sizes: List[int] = Field(default_factory=lambda: [10, 20, 50, 100, 500])

    # Collaborators
    catalog_url: str = Field("http://localhost:54321/rest/v1", description="Base URL of the catalog REST store.")
    catalog_api_key: str = Field("", description="API key sent to the catalog store.")
    ingestion_url: str = Field(
        "http://localhost:5678/webhook/LecturaDeInvoice",
        description="Webhook that ingests dispatch spreadsheets.",
    )
    ingestion_timeout: float = Field(120.0, description="Timeout for document ingestion uploads in seconds.")

    # Wizard
    default_origin: str = Field("CHINA")
    lease_ttl_seconds: float = Field(1800.0, gt=0, description="Lifetime of an exclusive dispatch lease.")

    model_config = SettingsConfigDict(env_prefix="APP_", env_file=None, case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached instance of the application settings.

    Using a cache prevents expensive environment parsing on every call.
    The returned object is immutable and safe to share across threads.
    """
    return Settings()
