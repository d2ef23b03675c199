"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables
    )

    # Gemini API
    google_api_key: str = Field(validation_alias="GEMINI_API_KEY")
    gemini_model: str = "gemini-2.5-flash"
    llm_temperature: float = Field(default=0.2, ge=0, le=2)
    llm_top_p: float = 0.95
    llm_max_output_tokens: int = 2048
    llm_structured_max_output_tokens: int = 4096

    # Database (in-memory SQLite when unset)
    database_url: str | None = None
    database_echo: bool = False

    # Supabase-style JWTs; anonymous access when unset
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = "authenticated"

    # Summary cache
    summary_cache_ttl_hours: int = 24

    # Waitlist
    turnstile_secret_key: str | None = None
    turnstile_verify_url: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    redis_url: str | None = None
    waitlist_ip_limit: int = 5
    waitlist_email_limit: int = 3
    waitlist_window_seconds: int = 3600

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


settings = Settings()
