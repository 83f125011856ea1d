import logging
import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Cache
    cache_backend: str = os.getenv("CACHE_BACKEND", "memory")  # "memory" or "redis"
    cache_key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "enrichment_cache")
    cache_key_max_length: int = int(os.getenv("CACHE_KEY_MAX_LENGTH", "200"))
    cache_ttl: int = int(os.getenv("CACHE_TTL", "604800"))  # 7 days default
    cache_ttl_relationship_analysis: int = int(
        os.getenv("CACHE_TTL_RELATIONSHIP_ANALYSIS", os.getenv("CACHE_TTL", "604800"))
    )
    cache_ttl_timeline_analysis: int = int(
        os.getenv("CACHE_TTL_TIMELINE_ANALYSIS", os.getenv("CACHE_TTL", "604800"))
    )

    # AI model (OpenAI-compatible chat completions endpoint)
    ai_base_url: str = os.getenv("AI_BASE_URL", "https://api.openai.com/v1")
    ai_model: str = os.getenv("AI_MODEL", "gpt-4o-mini")
    ai_call_timeout: float = float(os.getenv("AI_CALL_TIMEOUT", "60"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")

    # Retry policy
    retry_max_attempts: int = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
    retry_base_delay: float = float(os.getenv("RETRY_BASE_DELAY", "1.0"))
    retry_max_delay: float = float(os.getenv("RETRY_MAX_DELAY", "30.0"))

    # Enrichment
    batch_concurrency_limit: int = int(os.getenv("BATCH_CONCURRENCY_LIMIT", "4"))
    batch_retained_jobs: int = int(os.getenv("BATCH_RETAINED_JOBS", "100"))  # finished background jobs kept for polling
    retry_max_selection_attempts: int = int(os.getenv("RETRY_MAX_SELECTION_ATTEMPTS", "3"))
    retry_cooldown_hours: float = float(os.getenv("RETRY_COOLDOWN_HOURS", "24"))
    min_name_length: int = int(os.getenv("MIN_NAME_LENGTH", "2"))

    # Catalog (in-memory gateway seed file, JSON list of entities)
    catalog_seed_path: str | None = os.getenv("CATALOG_SEED_PATH")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def uses_redis(self) -> bool:
        """Check if the Redis cache backend is configured."""
        return self.cache_backend.lower() == "redis"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_backend.lower() not in ("memory", "redis"):
            raise ValueError(f"CACHE_BACKEND must be 'memory' or 'redis', got {self.cache_backend}")

        for name in ("cache_ttl", "cache_ttl_relationship_analysis", "cache_ttl_timeline_analysis"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive")

        if self.retry_max_attempts < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1")

        if self.batch_concurrency_limit < 1:
            raise ValueError("BATCH_CONCURRENCY_LIMIT must be at least 1")

        if self.batch_retained_jobs < 1:
            raise ValueError("BATCH_RETAINED_JOBS must be at least 1")

        if self.ai_call_timeout <= 0:
            raise ValueError("AI_CALL_TIMEOUT must be positive")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )


def configure_logging(level: str | None = None) -> None:
    """Configure root logging from LOG_LEVEL."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
