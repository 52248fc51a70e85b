from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # database & redis
    # Plain strings so sqlite:// and redis:// URLs are always accepted
    DATABASE_URL: str = "sqlite:///./dossier.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # llm
    OPENROUTER_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    LLM_MODEL: str = "openai/gpt-5.1"
    # Hard cap on concurrent LLM calls per process
    LLM_MAX_CONCURRENCY: int = 4
    LLM_MAX_TOKENS: int = 16000
    LLM_TEMPERATURE: float = 0.2
    # JSON map of model -> {"input_per_mtok", "output_per_mtok", "cached_input_per_mtok"}
    LLM_PRICEBOOK_JSON: str | None = None

    # pipeline
    SECTION_TIMEOUT_SECONDS: float = 600.0
    DEFAULT_GEOGRAPHY: str = "Global"

    # auth / security
    API_AUTH_KEY: str | None = None
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    # data retention (in days)
    RESEARCH_RETENTION_DAYS: int = 90

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
