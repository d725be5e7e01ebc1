"""
Store Analytics Reporting Pipeline
Centralized Configuration Management

Every tunable of the reporting pipeline (trailing window, winsorization
bounds, risk weights and thresholds, lifecycle buckets) lives here as
Pydantic settings with environment variable support and validation.
"""

from datetime import date
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CleaningSettings(BaseSettings):
    """Sales cleaning configuration"""

    model_config = SettingsConfigDict(env_prefix="CLEANING_")

    winsor_lower_pct: float = Field(default=0.01, description="Lower winsorization percentile (0..1)")
    winsor_upper_pct: float = Field(default=0.99, description="Upper winsorization percentile (0..1)")

    @model_validator(mode="after")
    def validate_bounds(self) -> "CleaningSettings":
        """Percentile bounds must be ordered and inside [0, 1]"""
        if not 0.0 <= self.winsor_lower_pct < self.winsor_upper_pct <= 1.0:
            raise ValueError(
                f"Winsorization bounds must satisfy 0 <= lower < upper <= 1, "
                f"got ({self.winsor_lower_pct}, {self.winsor_upper_pct})"
            )
        return self


class WindowSettings(BaseSettings):
    """Trailing KPI window configuration"""

    model_config = SettingsConfigDict(env_prefix="WINDOW_")

    window_days: int = Field(default=90, gt=0, description="Trailing window length in days")
    reference_date: Optional[date] = Field(
        default=None,
        description="Window end date (inclusive); defaults to the latest sales date",
    )
    top_regions: int = Field(default=5, gt=0, description="Regions in top/bottom AOV boards")
    top_stores: int = Field(default=20, gt=0, description="Stores in top/bottom z-score boards")


class RiskSettings(BaseSettings):
    """Benchmark and risk scoring configuration"""

    model_config = SettingsConfigDict(env_prefix="RISK_")

    weight_revenue: float = Field(default=0.5, ge=0, description="Weight of revenue z-score")
    weight_transactions: float = Field(default=0.3, ge=0, description="Weight of transactions z-score")
    weight_aov: float = Field(default=0.2, ge=0, description="Weight of AOV z-score")
    z_clamp: float = Field(default=3.0, gt=0, description="Absolute clamp applied to z-scores before weighting")
    score_threshold: float = Field(default=70.0, ge=0, le=100, description="Risk score that triggers the watchlist")
    weakness_z_threshold: float = Field(
        default=-0.5,
        description="Raw z below which both transactions and AOV count as broad weakness",
    )
    watchlist_quartile: int = Field(default=4, ge=1, le=4, description="Revenue quartile considered bottom")
    board_size: int = Field(default=10, gt=0, description="Stores per region leader/watchlist board")


class LifecycleSettings(BaseSettings):
    """Store lifecycle and cohort configuration"""

    model_config = SettingsConfigDict(env_prefix="LIFECYCLE_")

    age_bucket_bounds: List[int] = Field(
        default=[0, 180, 365, 730],
        description="Ascending day thresholds between age buckets",
    )
    age_bucket_labels: List[str] = Field(
        default=["pre-open", "0-6m", "6-12m", "1-2y", "2y+"],
        description="Bucket labels, one more than the number of bounds",
    )
    ttb_upper_percentile: float = Field(default=0.9, gt=0, lt=1, description="Upper percentile in TTB summaries")

    @field_validator("age_bucket_bounds")
    @classmethod
    def validate_ascending(cls, v: List[int]) -> List[int]:
        """Bucket bounds must be strictly ascending"""
        if any(a >= b for a, b in zip(v, v[1:])):
            raise ValueError(f"Age bucket bounds must be strictly ascending, got {v}")
        return v

    @model_validator(mode="after")
    def validate_labels(self) -> "LifecycleSettings":
        if len(self.age_bucket_labels) != len(self.age_bucket_bounds) + 1:
            raise ValueError(
                f"Expected {len(self.age_bucket_bounds) + 1} age bucket labels, "
                f"got {len(self.age_bucket_labels)}"
            )
        return self


class DataLakeSettings(BaseSettings):
    """Input and output locations"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    raw_path: str = Field(default="./data/raw", description="Directory holding regions/stores/sales files")
    curated_path: str = Field(default="./data/curated", description="Directory for JSON report bundles")
    regions_file: str = Field(default="regions", description="Regions table file stem")
    stores_file: str = Field(default="stores", description="Stores table file stem")
    sales_file: str = Field(default="sales", description="Sales table file stem")
    default_format: str = Field(default="csv", description="Default file format: csv, json or parquet")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="console", description="Log format: json or console")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing pipeline configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="store-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    cleaning: CleaningSettings = Field(default_factory=CleaningSettings)
    window: WindowSettings = Field(default_factory=WindowSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    data_lake: DataLakeSettings = Field(default_factory=DataLakeSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
