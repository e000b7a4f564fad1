"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Analytics thresholds live here so they can be tuned per deployment.
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
    store_page_size: int = Field(
        default=1000,
        ge=100,
        le=1000,
        description="Rows fetched per page; PostgREST caps responses at max-rows (1000)"
    )

    # ===================
    # COMPETITORS
    # ===================
    default_radius_km: float = Field(
        default=5.0,
        gt=0,
        le=100,
        description="Default competitor search radius in km"
    )

    # ===================
    # TRENDS
    # ===================
    trend_direction_threshold: float = Field(
        default=0.01,
        ge=0,
        le=1,
        description="Regression slope above which a series is rising (below -x falling)"
    )
    weekly_seasonality_threshold: float = Field(
        default=0.5,
        ge=0,
        description="Stddev across weekday averages that flags a weekly pattern"
    )
    monthly_seasonality_threshold: float = Field(
        default=1.0,
        ge=0,
        description="Stddev across monthly averages that flags a monthly pattern"
    )
    moving_average_window: int = Field(
        default=7,
        ge=2,
        le=90,
        description="Points used for the trailing moving average"
    )

    # ===================
    # MARKET / GEO
    # ===================
    national_average_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Trailing days used for the national average"
    )
    geo_window_hours: int = Field(
        default=24,
        ge=1,
        le=720,
        description="Only observations newer than this count for area comparisons"
    )
    heatmap_window_hours: int = Field(
        default=24,
        ge=1,
        le=720,
        description="Only observations newer than this are plotted on heat maps"
    )
    heatmap_max_distance_km: float = Field(
        default=50.0,
        gt=0,
        le=500,
        description="Stations farther than this are ignored by IDW interpolation"
    )

    # ===================
    # RANKING / RECOMMENDATIONS
    # ===================
    rank_cache_ttl_seconds: int = Field(
        default=172800,
        ge=3600,
        description="TTL for cached daily ranks (must outlive the following day)"
    )
    recommendation_max_count: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum recommendations returned"
    )
    default_locale: str = Field(
        default="es",
        pattern="^(es|en)$",
        description="Locale used for recommendation messages"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


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
