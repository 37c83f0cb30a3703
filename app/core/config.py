from pydantic_settings import BaseSettings, SettingsConfigDict

from app.gateway.types import OpenAIConfig, RateLimitConfig
from app.proposals.types import CacheConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # OpenAI
    openai_api_key: str = ""
    openai_api_url: str = "https://api.openai.com/v1/chat/completions"
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 2048
    openai_temperature: float = 0.7
    openai_top_p: float = 1.0
    openai_frequency_penalty: float = 0.0
    openai_presence_penalty: float = 0.0
    openai_timeout_seconds: float = 60.0

    # Gateway retry policy
    gateway_max_attempts: int = 3  # Total attempts for transient failures
    gateway_base_retry_delay: float = 1.0
    gateway_max_retry_delay: float = 10.0

    # Proposal rate limiting (shared across all callers)
    rate_limit_enabled: bool = True
    rate_limit_max_requests_per_minute: int = 10
    rate_limit_max_tokens_per_minute: int = 50_000

    # Proposal response cache
    cache_enabled: bool = True
    cache_ttl_minutes: int = 60
    cache_max_entries: int = 100

    # Per-client HTTP limit on the generate endpoint (slowapi syntax)
    http_generate_limit: str = "30/minute"

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://portfolio.example.com"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key) and self.openai_api_key != "your_openai_api_key_here"


settings = Settings()


def openai_config(s: Settings | None = None) -> OpenAIConfig:
    """Build the model tuning record passed through to the gateway."""
    s = s or settings
    return OpenAIConfig(
        model=s.openai_model,
        max_tokens=s.openai_max_tokens,
        temperature=s.openai_temperature,
        top_p=s.openai_top_p,
        frequency_penalty=s.openai_frequency_penalty,
        presence_penalty=s.openai_presence_penalty,
    )


def rate_limit_config(s: Settings | None = None) -> RateLimitConfig:
    s = s or settings
    return RateLimitConfig(
        enabled=s.rate_limit_enabled,
        max_requests_per_minute=s.rate_limit_max_requests_per_minute,
        max_tokens_per_minute=s.rate_limit_max_tokens_per_minute,
    )


def cache_config(s: Settings | None = None) -> CacheConfig:
    s = s or settings
    return CacheConfig(
        enabled=s.cache_enabled,
        ttl_minutes=s.cache_ttl_minutes,
        max_entries=s.cache_max_entries,
    )


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if settings.rate_limit_max_requests_per_minute < 1:
        errors.append("RATE_LIMIT_MAX_REQUESTS_PER_MINUTE must be at least 1")

    if settings.rate_limit_max_tokens_per_minute < settings.openai_max_tokens:
        errors.append("RATE_LIMIT_MAX_TOKENS_PER_MINUTE must be >= OPENAI_MAX_TOKENS or no request can be admitted")

    if settings.cache_max_entries < 1:
        errors.append("CACHE_MAX_ENTRIES must be at least 1")

    if settings.gateway_max_attempts < 1:
        errors.append("GATEWAY_MAX_ATTEMPTS must be at least 1")

    if settings.app_env == "production":
        if not settings.openai_configured:
            errors.append("OPENAI_API_KEY must be set in production")
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
