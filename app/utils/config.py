"""
Configuration management for The Intake.

Uses pydantic-settings to load configuration from environment variables
and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API Configuration
    api_port: int = 8000
    log_level: str = "INFO"
    api_title: str = "The Intake API"
    api_version: str = "1.0.0"

    # Watch Configuration
    downloads_dir: Path = Path("~/Downloads")
    output_dir: Optional[Path] = None  # defaults to downloads_dir
    watch_recursive: bool = False

    # Fragment Grouping
    sweep_interval_seconds: float = 5.0
    staleness_seconds: float = 600.0
    abandoned_fragment_policy: Literal["keep", "delete"] = "keep"

    # Classification Strategies
    use_local_model: bool = False
    use_remote_llm: bool = False
    use_web_scraping: bool = True
    use_genre_mood_detection: bool = True
    min_confidence: Literal["none", "low", "medium", "high"] = "medium"
    strategy_timeout_seconds: float = 15.0
    classification_budget_seconds: float = 30.0

    # Local model daemon
    local_model_url: str = "http://127.0.0.1:17891"

    # Remote LLM (Anthropic Messages API)
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-haiku-4-5"
    anthropic_api_url: str = "https://api.anthropic.com/v1/messages"

    # Web lookup
    stock_metadata_cache: Path = Path("~/.intake/stock_metadata.json")

    # Routing
    routing_manifest: Path = Path("~/.intake/routing_manifest.json")

    # Worker Configuration
    worker_threads: int = 2

    # Analytics
    analytics_enabled: bool = False
    analytics_url: Optional[str] = None
    analytics_api_key: Optional[str] = None
    analytics_batch_size: int = 20
    analytics_flush_interval: float = 300.0
    analytics_max_queue: int = 1000
    analytics_queue_file: Path = Path("~/.intake/analytics_queue.json")
    analytics_anonymous_id: str = "anonymous"
    locale: str = "en_US"

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def get_downloads_dir(self) -> Path:
        """Expanded downloads directory."""
        return self.downloads_dir.expanduser()

    def get_output_dir(self) -> Path:
        """Directory merged archives are extracted into."""
        if self.output_dir is None:
            return self.get_downloads_dir()
        return self.output_dir.expanduser()

    def get_stock_metadata_cache(self) -> Path:
        return self.stock_metadata_cache.expanduser()

    def get_routing_manifest(self) -> Path:
        return self.routing_manifest.expanduser()

    def get_analytics_queue_file(self) -> Path:
        return self.analytics_queue_file.expanduser()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
