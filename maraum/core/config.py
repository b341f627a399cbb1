"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # App
    app_name: str = "maraum"
    debug: bool = False

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    store_max_retries: int = 2

    # Gemini API
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # Per-channel generation parameters
    main_timeout_seconds: float = 30.0
    main_max_output_tokens: int = 2000
    main_temperature: float = 0.9
    helper_timeout_seconds: float = 20.0
    helper_max_output_tokens: int = 1000
    helper_temperature: float = 0.7

    # Retry policy (retries after the first attempt)
    provider_max_retries: int = 3
    provider_backoff_base_seconds: float = 1.0

    # Conversation windows sent to the provider
    main_history_window: int = 20
    helper_history_window: int = 5
    helper_main_context_window: int = 10

    # Hard ceiling on main-channel exchanges per session
    main_message_ceiling: int = 30

    # CORS
    cors_origins: list[str] = ["http://localhost:4321"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
