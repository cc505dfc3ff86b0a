"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # BAKERY
    # ===================
    bakery_name: str = Field(
        default="BM Boulangerie",
        description="Name printed at the top of supplier messages"
    )
    message_language: str = Field(
        default="fr",
        pattern="^(fr|en)$",
        description="Language of outbound supplier messages"
    )
    timezone: str = Field(
        default="Europe/Paris",
        description="Timezone used for cutoffs and urgency stages"
    )

    # ===================
    # ORDERING RULES
    # ===================
    default_cutoff_hour: int = Field(
        default=12,
        ge=0,
        le=23,
        description="Hour of the cutoff on the day before delivery"
    )
    default_cutoff_minute: int = Field(
        default=0,
        ge=0,
        le=59,
        description="Minute of the cutoff on the day before delivery"
    )
    autosave_quiet_ms: int = Field(
        default=600,
        ge=0,
        le=60000,
        description="Quiet period before a debounced autosave is written"
    )

    # ===================
    # LOCAL SNAPSHOTS
    # ===================
    snapshot_dir: str = Field(
        default=".snapshots",
        description="Directory holding baselines and cached selections"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def autosave_quiet_seconds(self) -> float:
        """Debounce quiet period in seconds (threading.Timer unit)."""
        return self.autosave_quiet_ms / 1000


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
