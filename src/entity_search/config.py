"""Centralized configuration for entity-search using Pydantic Settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    All environment variables are validated at startup with proper types.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Store settings
    search_index_path: Path = Field(
        default=Path("search_index.db"), description="SQLite database file holding the search index"
    )
    sqlite_busy_timeout_ms: int = Field(
        default=30000, ge=0, description="How long a connection waits on a locked database before failing"
    )

    # Scoring settings
    min_score_multiplier: float = Field(
        default=0.8,
        ge=0.0,
        description="Full-text matches must score above round(len(query) * multiplier)",
    )
    substring_fallback_enabled: bool = Field(
        default=True, description="Accept records whose content contains the query regardless of score"
    )
    search_result_limit: int = Field(default=0, ge=0, description="Maximum hits per search (0 = unlimited)")

    # Hook settings
    hook_cache_enabled: bool = Field(
        default=True, description="Cache resolved pre/post-search hooks per entity type"
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    service_name: str = Field(default="entity-search", description="Service name reported to OpenTelemetry")

    def get_result_limit(self) -> int | None:
        """Get the configured result limit, ``None`` when unlimited."""
        return self.search_result_limit or None
