"""
Centralized settings management using pydantic-settings.

All environment variables for the learning service are defined here.
Use get_settings() to access the singleton settings instance.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Supabase credentials are only needed for the ``supabase`` store backend:
        - SUPABASE_URL: Supabase project URL
        - SUPABASE_SERVICE_KEY: Supabase service role key

    Learning feature flags (all learning features are OFF by default):
        - LEARNING_EVENTS_ENABLED: write user_learning_events rows
        - LEARNING_STATE_ENABLED: let consumers read user_fashion_state
        - LEARNING_SHADOW_MODE: compute/log state without applying it (default on)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(
        default=False,
        description="Render logs as JSON (forced on in production)"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def use_json_logs(self) -> bool:
        return self.json_logs or self.is_production

    # ==========================================================================
    # Supabase Configuration
    # ==========================================================================
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")

    # ==========================================================================
    # Learning Store Backend
    # ==========================================================================
    learning_store_backend: str = Field(
        default="supabase",
        description="Where learning data lives: 'supabase' or 'memory'"
    )

    @field_validator("learning_store_backend", mode="before")
    @classmethod
    def parse_store_backend(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in ("supabase", "memory"):
                raise ValueError(f"Unknown learning store backend: {v!r}")
        return v

    # ==========================================================================
    # Feature Flags
    # ==========================================================================
    learning_events_enabled: bool = Field(
        default=False,
        description="Enable event logging to user_learning_events"
    )
    learning_state_enabled: bool = Field(
        default=False,
        description="Enable consumption of user_fashion_state by personalization"
    )
    learning_shadow_mode: bool = Field(
        default=True,
        description="Log what learning state WOULD change without affecting output"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and the project .env file.

    Returns:
        Settings: The application settings instance
    """
    env_file = Path(__file__).parent.parent.parent / ".env"
    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "supabase_url": "https://test.supabase.co",
        "supabase_service_key": "test-key",
        "environment": "testing",
        "debug": True,
        "learning_store_backend": "memory",
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
