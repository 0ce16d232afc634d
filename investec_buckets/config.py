"""
Application configuration using pydantic-settings.
All settings read from environment variables (or .env) and validated once at startup.
"""

from typing import Optional

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from investec_buckets.errors import ConfigError

OTHER_BUCKET = "Other"
DEFAULT_BUCKETS = "Food,Transportation,Entertainment,Bills & Utilities,Healthcare,Income,Transfers,Other"


class Settings(BaseSettings):
    """Central configuration for the transaction sync daemon."""

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "investec-buckets"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Investec OpenAPI ─────────────────────────────────────
    INVESTEC_X_API_KEY: str
    INVESTEC_CLIENT_ID: str
    INVESTEC_CLIENT_SECRET: str
    INVESTEC_BASE_URL: str = "https://openapi.investec.com"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_ECHO: bool = False

    # ── LLM-A: Gemini (paired) ───────────────────────────────
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: Optional[str] = None

    # ── LLM-B: Ollama ────────────────────────────────────────
    OLLAMA_MODEL: Optional[str] = None
    OLLAMA_HOST: str = "http://localhost"
    OLLAMA_PORT: int = 11434

    # ── Google Custom Search (paired) ────────────────────────
    GOOGLE_SEARCH_API_KEY: Optional[str] = None
    GOOGLE_SEARCH_ENGINE_ID: Optional[str] = None

    # ── Classification ───────────────────────────────────────
    BUCKETS: str = DEFAULT_BUCKETS
    CITY: Optional[str] = None

    # ── Observability ────────────────────────────────────────
    SENTRY_DSN: Optional[str] = None
    PROMETHEUS_ENABLED: bool = False
    PROMETHEUS_PORT: int = 9108

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_ignore_empty": True,
        "case_sensitive": True,
        "frozen": True,
        "extra": "ignore",
    }

    @field_validator(
        "GEMINI_API_KEY",
        "GEMINI_MODEL",
        "OLLAMA_MODEL",
        "GOOGLE_SEARCH_API_KEY",
        "GOOGLE_SEARCH_ENGINE_ID",
        "CITY",
        "SENTRY_DSN",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("BUCKETS", mode="before")
    @classmethod
    def _default_buckets(cls, value):
        if isinstance(value, str) and not value.replace(",", "").strip():
            return DEFAULT_BUCKETS
        return value

    @field_validator("OLLAMA_HOST", mode="before")
    @classmethod
    def _default_ollama_host(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return "http://localhost"
        return value

    @model_validator(mode="after")
    def _check_providers(self) -> "Settings":
        if (self.GEMINI_API_KEY is None) != (self.GEMINI_MODEL is None):
            raise ValueError("GEMINI_API_KEY and GEMINI_MODEL must be set together")
        if (self.GOOGLE_SEARCH_API_KEY is None) != (self.GOOGLE_SEARCH_ENGINE_ID is None):
            raise ValueError(
                "GOOGLE_SEARCH_API_KEY and GOOGLE_SEARCH_ENGINE_ID must be set together"
            )
        if not (self.gemini_configured or self.ollama_configured):
            raise ValueError("at least one LLM provider (GEMINI_* or OLLAMA_MODEL) must be configured")
        return self

    # ── Derived views ────────────────────────────────────────
    @property
    def gemini_configured(self) -> bool:
        return self.GEMINI_API_KEY is not None and self.GEMINI_MODEL is not None

    @property
    def ollama_configured(self) -> bool:
        return self.OLLAMA_MODEL is not None

    @property
    def search_configured(self) -> bool:
        return self.GOOGLE_SEARCH_API_KEY is not None and self.GOOGLE_SEARCH_ENGINE_ID is not None

    @property
    def ollama_base_url(self) -> str:
        return f"{self.OLLAMA_HOST.rstrip('/')}:{self.OLLAMA_PORT}"

    @property
    def bucket_list(self) -> list[str]:
        """Configured buckets in order, with the terminal bucket always present."""
        return parse_buckets(self.BUCKETS)


def parse_buckets(raw: str) -> list[str]:
    """Split a comma-separated bucket list, dropping blanks and duplicates."""
    buckets: list[str] = []
    for name in raw.split(","):
        name = name.strip()
        if name and name not in buckets:
            buckets.append(name)
    if OTHER_BUCKET not in buckets:
        buckets.append(OTHER_BUCKET)
    return buckets


def _describe(error: ValidationError) -> str:
    """Collapse a pydantic ValidationError into one diagnostic line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        if item.get("type") == "missing":
            message = "missing required environment variable"
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def load_settings(**overrides) -> Settings:
    """
    Build and validate Settings from the environment.
    Raises ConfigError with a single-line message on any violation.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(_describe(e)) from e
