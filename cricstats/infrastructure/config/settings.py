from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Optional

from dotenv import load_dotenv


load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Keyword overrides are
    applied after the environment is read, which is how tests build a
    settings object without touching the process environment.
    """

    def __init__(self, **overrides: Any) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")

        # Model collaborator
        self.api_key: Optional[str] = os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")
        self.model_name: str = os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")
        self.model_base_url: str = os.getenv("MODEL_BASE_URL", "https://openrouter.ai/api/v1")
        self.temperature: float = _env_float("MODEL_TEMPERATURE", 0.0)
        self.max_retries: int = _env_int("MODEL_MAX_RETRIES", 5)
        self.timeout: float = _env_float("MODEL_TIMEOUT", 60.0)
        self.max_tokens: int = _env_int("MODEL_MAX_TOKENS", 1000)

        # Record store
        self.mongodb_uri: Optional[str] = os.getenv("MONGODB_URI") or None
        self.mongodb_database: str = os.getenv("MONGODB_DATABASE", "cricstats")

        # Conversation memory
        self.history_window: int = _env_int("MEMORY_HISTORY_WINDOW", 10)
        self.compaction_threshold: int = _env_int("MEMORY_COMPACTION_THRESHOLD", 10)
        self.compaction_keep: int = _env_int("MEMORY_COMPACTION_KEEP", 3)

        # Pipeline
        self.default_query_limit: int = _env_int("DEFAULT_QUERY_LIMIT", 10)
        self.field_catalog_ttl: int = _env_int("FIELD_CATALOG_TTL", 300)
        self.snapshot_delay_ms: int = _env_int("SNAPSHOT_DELAY_MS", 0)
        self.seed_data_dir: str = os.getenv("SEED_DATA_DIR", "./data")

        # Server and logging
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.log_format: str = os.getenv("LOG_FORMAT", "json")
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = _env_int("PORT", 8000)

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
