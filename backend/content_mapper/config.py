from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class Settings(BaseSettings):
    anthropic_api_key: str = ""

    # Completion service
    completion_base_url: str = "https://api.anthropic.com"
    default_model: str = "claude-sonnet-4-5-20250929"
    fallback_models: list[str] = [
        "claude-sonnet-4-20250514",
        "claude-3-7-sonnet-20250219",
        "claude-3-5-haiku-20241022",
    ]
    completion_max_tokens: int = 4000
    completion_timeout: int = 120  # seconds
    probe_models_endpoint: bool = True
    use_combined_detection: bool = True

    # Markup sent per prompt
    markup_char_budget: int = 50_000

    # Scrape defaults
    scrape_strategy: str = "auto"  # "browser", "http", or "auto"
    page_load_timeout: int = 30000  # milliseconds
    http_fetch_timeout: int = 30  # seconds
    viewport_width: int = 1920
    viewport_height: int = 1080
    screenshot_dir: str = ""

    # In-memory state lifetimes
    job_retention_seconds: int = 60 * 60
    job_sweep_interval_seconds: int = 10 * 60
    cache_ttl_seconds: int = 24 * 60 * 60
    cache_sweep_interval_seconds: int = 60 * 60

    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    class Config:
        # Look for .env in the repo root (two levels up from backend/content_mapper/)
        # In production, env vars are injected directly, .env is optional
        _env_path = os.path.join(os.path.dirname(__file__), "..", "..", ".env")
        env_file = _env_path if os.path.exists(_env_path) else None
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()
